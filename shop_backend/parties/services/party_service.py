# parties/services/party_service.py

"""
PARTY ONBOARDING / DEACTIVATION

Parties are created once and soft-deactivated; they are never deleted while
invoices or payments reference them.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from parties.models import Party

logger = logging.getLogger("ledger.parties")


class PartyServiceError(ValueError):
    pass


@transaction.atomic
def create_party(
    *,
    name: str,
    party_type: str = Party.TYPE_CUSTOMER,
    phone: str = "",
    email: str = "",
    opening_balance=None,
    actor=None,
) -> Party:
    if party_type not in {Party.TYPE_CUSTOMER, Party.TYPE_SUPPLIER}:
        raise PartyServiceError("party_type must be 'customer' or 'supplier'")

    party = Party.objects.create(
        name=name,
        party_type=party_type,
        phone=(phone or "").strip(),
        email=(email or "").strip(),
        opening_balance=opening_balance or 0,
    )

    _audit_party(actor=actor, party=party, action="PARTY_CREATED")
    return party


@transaction.atomic
def deactivate_party(*, party: Party, actor=None) -> Party:
    party = Party.objects.select_for_update().get(pk=party.pk)
    if not party.is_active:
        return party

    party.is_active = False
    party.deactivated_at = timezone.now()
    party.save(update_fields=["is_active", "deactivated_at", "updated_at"])

    _audit_party(actor=actor, party=party, action="PARTY_DEACTIVATED")
    return party


def _audit_party(*, actor, party: Party, action: str) -> None:
    # Lazy import: audit is a leaf app, parties must load without it.
    from audit.services.audit_recorder import record_audit_best_effort

    record_audit_best_effort(
        actor=actor,
        action=action,
        resource_type="Party",
        resource_id=party.pk,
        details={
            "name": party.name,
            "party_type": party.party_type,
            "current_balance": str(party.current_balance),
        },
    )
