# audit/services/audit_recorder.py

"""
AUDIT RECORDER

record_audit() writes one AuditEntry and raises AuditWriteFailed on any
failure. Business flows never call it bare: they go through
record_audit_best_effort(), which runs it inside its own savepoint so a
broken audit table can never undo a committed payment or invoice.
"""

from __future__ import annotations

import logging

from django.db import transaction

from audit.models import AuditEntry
from payments.services.exceptions import AuditWriteFailed

logger = logging.getLogger("ledger.audit")

# Default severity per action; callers may override.
DEFAULT_SEVERITY = {
    AuditEntry.ACTION_PAYMENT_RECEIVED: AuditEntry.SEVERITY_MEDIUM,
    AuditEntry.ACTION_PAYMENT_MADE: AuditEntry.SEVERITY_MEDIUM,
    AuditEntry.ACTION_INVOICE_CANCELLED: AuditEntry.SEVERITY_MEDIUM,
    AuditEntry.ACTION_PARTY_DEACTIVATED: AuditEntry.SEVERITY_MEDIUM,
}


def record_audit(
    *,
    actor=None,
    action: str,
    resource_type: str,
    resource_id,
    severity: str | None = None,
    details: dict | None = None,
) -> AuditEntry:
    severity = severity or DEFAULT_SEVERITY.get(action, AuditEntry.SEVERITY_LOW)

    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None

    try:
        with transaction.atomic():
            entry = AuditEntry.objects.create(
                actor=actor,
                action=action,
                resource_type=resource_type,
                resource_id=str(resource_id),
                severity=severity,
                details=details or {},
            )
    except Exception as exc:
        raise AuditWriteFailed(
            f"Audit entry could not be written: {exc}",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
        ) from exc

    logger.info(
        "Audit entry recorded",
        extra={
            "action": action,
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            "severity": severity,
            "actor_id": str(actor.pk) if actor is not None else None,
        },
    )
    return entry


def record_audit_best_effort(**kwargs):
    """Returns the SideEffectOutcome; never raises for ordinary errors."""
    from payments.services.best_effort import run_best_effort

    return run_best_effort("audit", record_audit, **kwargs)
