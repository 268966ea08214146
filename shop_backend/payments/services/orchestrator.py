# payments/services/orchestrator.py

"""
PAYMENT ORCHESTRATOR (RecordPayment)

Records one payment in or out of the business and keeps every view of the
debt in step: invoice paid/due amounts, the party balance, the payment
document itself and (best effort) the bank/cash ledger, notifications and
the audit trail.

States:
    VALIDATING -> ALLOCATING -> APPLYING_INVOICES -> APPLYING_BALANCE
      -> APPLYING_BANK_TRANSACTION -> AUDITING -> COMPLETED
    terminal: REJECTED (hard error, nothing written)
              PARTIALLY_COMPLETED (committed, but a side effect failed)

Committed unit (one transaction.atomic block):
- every allocation line applied through the invoice state updater
  (optimistic check on the due amount read during allocation),
- party balance moved by the FULL payment amount,
- Payment + PaymentAllocation rows created.
Any error inside the unit rolls all of it back.

After the unit, each side effect runs through run_best_effort() in its own
savepoint. Their failures become warnings on the result and never undo the
committed unit.

Idempotency:
- idempotency_key is unique per party. A resubmission of the same request
  returns the stored payment with a `duplicate_submission` warning and
  writes nothing.
- "Same request" means same direction, amount, mode, bank account and
  invoice targeting (compared through request_fingerprint). Reusing a key
  for anything else raises IdempotencyKeyReused.

Locking:
- Allocation lines are applied in invoice primary-key order, whatever
  order the caller listed them in.
- A deadlock or serialization failure inside the unit surfaces as
  ConcurrentModification.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from audit.models import AuditEntry
from audit.services.audit_recorder import record_audit
from banking.models import BankTransaction
from banking.services.transaction_writer import write_payment_transaction
from invoicing.services.invoice_state import apply_invoice_allocation
from notifications.services.sinks import (
    EVENT_PAYMENT_MADE,
    EVENT_PAYMENT_RECEIVED,
    get_notification_sink,
)
from parties.models import Party
from parties.services.balance_service import apply_payment_to_party_balance
from payments.models import Payment, PaymentAllocation
from payments.services.allocation_resolver import AllocationPlan, resolve_allocation
from payments.services.best_effort import SideEffectOutcome, run_best_effort
from payments.services.exceptions import (
    HARD_ERRORS,
    ConcurrentModification,
    IdempotencyKeyReused,
    InvalidInput,
    PartyNotFound,
)
from payments.services.numbering import create_numbered

logger = logging.getLogger("payments")

TWOPLACES = Decimal("0.01")

# serialization_failure, deadlock_detected
LOCK_CONFLICT_SQLSTATES = {"40001", "40P01"}


# ======================================================
# STATES / RESULT TYPES
# ======================================================


class PaymentState:
    VALIDATING = "VALIDATING"
    ALLOCATING = "ALLOCATING"
    APPLYING_INVOICES = "APPLYING_INVOICES"
    APPLYING_BALANCE = "APPLYING_BALANCE"
    APPLYING_BANK_TRANSACTION = "APPLYING_BANK_TRANSACTION"
    AUDITING = "AUDITING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"


WARNING_DUPLICATE_SUBMISSION = "duplicate_submission"

WARNING_MESSAGES = {
    "bank_transaction_failed": "Payment recorded, but the bank ledger entry failed. Please verify manually.",
    "bank_account_unavailable": "Payment recorded, but the bank/cash account is missing or inactive. No bank ledger entry was written.",
    "audit_write_failed": "Payment recorded, but the audit entry could not be written.",
    "notification_failed": "Payment recorded, but the notification could not be published.",
    WARNING_DUPLICATE_SUBMISSION: "This payment was already recorded; returning the original.",
}


@dataclass(frozen=True)
class PaymentWarning:
    code: str
    message: str
    step: str = ""

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "step": self.step}


@dataclass
class PaymentResult:
    payment: Payment
    allocations: list[dict] = field(default_factory=list)
    advance_remainder: Decimal = Decimal("0.00")
    party_balance: Decimal = Decimal("0.00")
    bank_transaction_created: bool = False
    bank_transaction: dict | None = None
    warnings: list[PaymentWarning] = field(default_factory=list)
    state: str = PaymentState.COMPLETED

    @property
    def is_duplicate(self) -> bool:
        return any(w.code == WARNING_DUPLICATE_SUBMISSION for w in self.warnings)

    def to_dict(self) -> dict:
        p = self.payment
        return {
            "payment": {
                "id": str(p.id),
                "payment_number": p.payment_number,
                "party_id": str(p.party_id),
                "direction": p.direction,
                "mode": p.mode,
                "amount": str(p.amount),
                "payment_method": p.payment_method,
                "payment_date": p.payment_date.isoformat() if p.payment_date else None,
                "bank_account_id": str(p.bank_account_id) if p.bank_account_id else None,
                "reference": p.reference,
                "source": p.source,
                "party_balance_before": str(p.party_balance_before),
                "party_balance_after": str(p.party_balance_after),
                "created_at": p.created_at.isoformat() if p.created_at else None,
            },
            "allocations": [
                {k: (str(v) if isinstance(v, Decimal) else v) for k, v in row.items()}
                for row in self.allocations
            ],
            "advance_remainder": str(self.advance_remainder),
            "party_balance": str(self.party_balance),
            "bank_transaction_created": self.bank_transaction_created,
            "bank_transaction": self.bank_transaction,
            "warnings": [w.to_dict() for w in self.warnings],
            "state": self.state,
        }


# ======================================================
# HELPERS
# ======================================================


def _money(v) -> Decimal:
    try:
        return Decimal(str(v if v is not None else "0.00")).quantize(
            TWOPLACES, rounding=ROUND_HALF_UP
        )
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidInput(f"Invalid amount: {v!r}", amount=v) from exc


def _ledger_setting(name: str, default):
    return (getattr(settings, "LEDGER", None) or {}).get(name, default)


def _choice_values(choices) -> set[str]:
    return {value for value, _label in choices}


def _warning_from(outcome: SideEffectOutcome) -> PaymentWarning:
    code = outcome.error_code or f"{outcome.step}_failed"
    message = WARNING_MESSAGES.get(code) or outcome.error_message
    return PaymentWarning(code=code, message=message, step=outcome.step)


def _real_actor(actor):
    if actor is not None and getattr(actor, "is_authenticated", False):
        return actor
    return None


def _bank_snapshot(txn: BankTransaction | None) -> dict | None:
    if txn is None:
        return None
    return {
        "id": str(txn.id),
        "transaction_number": txn.transaction_number,
        "amount": str(txn.amount),
        "direction": txn.direction,
        "balance_before": str(txn.balance_before),
        "balance_after": str(txn.balance_after),
    }


def _allocation_rows(allocations) -> list[dict]:
    rows = []
    for a in allocations:
        inv = a.invoice
        rows.append(
            {
                "invoice_id": str(inv.id),
                "invoice_number": inv.invoice_number,
                "allocated_amount": a.allocated_amount,
                "due_before": a.due_before,
                "due_after": a.due_after,
                "payment_status": inv.payment_status,
            }
        )
    return rows


# ======================================================
# VALIDATION
# ======================================================


def _validate(
    *,
    party_id,
    direction,
    amount,
    mode,
    payment_method,
    source,
    bank_account_id,
) -> tuple[Party, Decimal]:
    amount = _money(amount)
    if amount <= 0:
        raise InvalidInput("Payment amount must be greater than zero", party_id=party_id, amount=amount)

    if direction not in _choice_values(Payment.DIRECTION_CHOICES):
        raise InvalidInput("direction must be 'in' or 'out'", direction=direction)

    if mode not in _choice_values(Payment.MODE_CHOICES):
        raise InvalidInput("mode must be 'advance' or 'against_invoice'", mode=mode)

    if payment_method not in _choice_values(Payment.METHOD_CHOICES):
        raise InvalidInput("Unknown payment method", payment_method=payment_method)

    if source not in _choice_values(Payment.SOURCE_CHOICES):
        raise InvalidInput("Unknown payment source", source=source)

    if (
        payment_method != Payment.METHOD_CASH
        and not bank_account_id
        and _ledger_setting("REQUIRE_BANK_ACCOUNT_FOR_NON_CASH", True)
    ):
        raise InvalidInput(
            "A bank account is required for non-cash payments",
            payment_method=payment_method,
        )

    if not party_id:
        raise InvalidInput("party_id is required")

    try:
        party = Party.objects.get(pk=party_id)
    except (Party.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise PartyNotFound(party_id=party_id) from exc

    if not party.is_active:
        raise PartyNotFound("Party is deactivated", party_id=party_id)

    return party, amount


# ======================================================
# IDEMPOTENCY
# ======================================================


def _duplicate_result(existing: Payment) -> PaymentResult:
    allocations = existing.allocations.select_related("invoice").all()
    txn = BankTransaction.objects.filter(
        reference_type=BankTransaction.REFERENCE_PAYMENT,
        reference_id=str(existing.pk),
    ).first()
    party_balance = Party.objects.values_list("current_balance", flat=True).get(pk=existing.party_id)

    logger.info(
        "Duplicate payment submission",
        extra={"payment_id": str(existing.pk), "idempotency_key": existing.idempotency_key},
    )

    return PaymentResult(
        payment=existing,
        allocations=_allocation_rows(allocations),
        advance_remainder=existing.advance_remainder,
        party_balance=_money(party_balance),
        bank_transaction_created=txn is not None,
        bank_transaction=_bank_snapshot(txn),
        warnings=[
            PaymentWarning(
                code=WARNING_DUPLICATE_SUBMISSION,
                message=WARNING_MESSAGES[WARNING_DUPLICATE_SUBMISSION],
                step="validating",
            )
        ],
        state=PaymentState.COMPLETED,
    )


def _find_duplicate(*, party: Party, idempotency_key) -> Payment | None:
    if not idempotency_key:
        return None
    return Payment.objects.filter(party=party, idempotency_key=idempotency_key).first()


def request_fingerprint(
    *,
    direction: str,
    amount: Decimal,
    mode: str,
    invoice_id=None,
    allocations=None,
    bank_account_id=None,
) -> str:
    """
    Deterministic digest of what a RecordPayment request asked for.

    Allocation rows are sorted first; their listed order never changes the
    outcome.
    """
    rows = []
    for row in allocations or []:
        if isinstance(row, dict):
            inv_id, raw_amount = row.get("invoice_id"), row.get("amount")
        else:
            inv_id, raw_amount = row, None
        rows.append(f"{inv_id}:{'' if raw_amount is None else _money(raw_amount)}")
    rows.sort()

    base = "|".join(
        [
            direction,
            str(_money(amount)),
            mode,
            str(invoice_id or ""),
            str(bank_account_id or ""),
            ",".join(rows),
        ]
    )
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def _replay(existing: Payment, *, fingerprint: str, direction: str, amount: Decimal, mode: str, bank_account_id):
    same = (
        existing.direction == direction
        and existing.amount == amount
        and existing.mode == mode
        and str(existing.bank_account_id or "") == str(bank_account_id or "")
    )
    # Rows written before fingerprints existed are compared on fields only.
    if same and existing.request_fingerprint:
        same = existing.request_fingerprint == fingerprint

    if not same:
        raise IdempotencyKeyReused(
            payment_id=existing.pk,
            payment_number=existing.payment_number,
            party_id=existing.party_id,
            idempotency_key=existing.idempotency_key,
        )
    return _duplicate_result(existing)


def _is_lock_conflict(exc: OperationalError) -> bool:
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in LOCK_CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(exc).lower()


# ======================================================
# COMMITTED UNIT
# ======================================================


def _commit(
    *,
    party: Party,
    plan: AllocationPlan,
    direction: str,
    amount: Decimal,
    mode: str,
    payment_method: str,
    payment_date,
    bank_account_id,
    reference: str,
    notes: str,
    source: str,
    idempotency_key,
    fingerprint: str,
    actor,
    progress: list,
) -> tuple[Payment, list[PaymentAllocation]]:
    try:
        with transaction.atomic():
            progress.append(PaymentState.APPLYING_INVOICES)
            applied = {}
            for line in sorted(plan.lines, key=lambda ln: str(ln.invoice.pk)):
                applied[line.invoice.pk] = apply_invoice_allocation(
                    invoice=line.invoice,
                    amount=line.allocated_amount,
                    expected_due=line.due_before,
                )

            progress.append(PaymentState.APPLYING_BALANCE)
            balance_before, balance_after = apply_payment_to_party_balance(
                party=party,
                direction=direction,
                amount=amount,
            )

            payment = create_numbered(
                Payment,
                "payment_number",
                Payment.NUMBER_PREFIX[direction],
                party=party,
                direction=direction,
                amount=amount,
                mode=mode,
                payment_method=payment_method,
                payment_date=payment_date,
                bank_account_id=bank_account_id or None,
                advance_remainder=plan.advance_remainder,
                party_balance_before=balance_before,
                party_balance_after=balance_after,
                source=source,
                reference=reference,
                notes=notes,
                idempotency_key=idempotency_key or None,
                request_fingerprint=fingerprint,
                created_by=actor,
            )

            allocations = [
                PaymentAllocation.objects.create(
                    payment=payment,
                    invoice=applied[line.invoice.pk],
                    allocated_amount=line.allocated_amount,
                    due_before=line.due_before,
                    due_after=line.due_after,
                )
                for line in plan.lines
            ]
    except OperationalError as exc:
        if not _is_lock_conflict(exc):
            raise
        logger.warning(
            "Payment unit hit a lock conflict",
            extra={"party_id": str(party.pk), "amount": str(amount), "error": str(exc)},
        )
        raise ConcurrentModification(
            "Invoices were locked by another payment; reload and retry",
            party_id=party.pk,
        ) from exc

    return payment, allocations


# ======================================================
# SIDE EFFECTS
# ======================================================


def _publish_notification(*, payment: Payment, party: Party):
    event = EVENT_PAYMENT_RECEIVED if payment.direction == Payment.DIRECTION_IN else EVENT_PAYMENT_MADE
    sink = get_notification_sink()
    return sink.publish(
        event,
        party=party,
        context={
            "payment_id": str(payment.id),
            "payment_number": payment.payment_number,
            "amount": str(payment.amount),
            "party_name": party.name,
            "direction": payment.direction,
        },
    )


def _audit_payment(*, actor, payment: Payment, allocations, bank_txn: BankTransaction | None):
    action = (
        AuditEntry.ACTION_PAYMENT_RECEIVED
        if payment.direction == Payment.DIRECTION_IN
        else AuditEntry.ACTION_PAYMENT_MADE
    )
    entries = [
        record_audit(
            actor=actor,
            action=action,
            resource_type="Payment",
            resource_id=payment.pk,
            details={
                "payment_number": payment.payment_number,
                "party_id": str(payment.party_id),
                "amount": str(payment.amount),
                "mode": payment.mode,
                "payment_method": payment.payment_method,
                "advance_remainder": str(payment.advance_remainder),
                "party_balance_before": str(payment.party_balance_before),
                "party_balance_after": str(payment.party_balance_after),
                "invoices": [
                    {"invoice_id": str(a.invoice_id), "allocated_amount": str(a.allocated_amount)}
                    for a in allocations
                ],
            },
        )
    ]
    if bank_txn is not None:
        entries.append(
            record_audit(
                actor=actor,
                action=AuditEntry.ACTION_BANK_TRANSACTION_CREATED,
                resource_type="BankTransaction",
                resource_id=bank_txn.pk,
                details={
                    "transaction_number": bank_txn.transaction_number,
                    "payment_number": payment.payment_number,
                    "amount": str(bank_txn.amount),
                    "balance_after": str(bank_txn.balance_after),
                },
            )
        )
    return entries


# ======================================================
# PUBLIC API
# ======================================================


def record_payment(
    *,
    party_id,
    direction: str,
    amount,
    mode: str,
    invoice_id=None,
    allocations: list[Any] | None = None,
    bank_account_id=None,
    payment_method: str = Payment.METHOD_CASH,
    payment_date=None,
    reference: str = "",
    notes: str = "",
    source: str = Payment.SOURCE_MANUAL,
    idempotency_key: str | None = None,
    allow_advance_remainder: bool | None = None,
    actor=None,
) -> PaymentResult:
    """
    Record a payment and return a PaymentResult.

    Raises a hard PaymentError (InvalidInput, PartyNotFound, InvoiceNotFound,
    InvalidAllocation, ConcurrentModification, IdempotencyKeyReused) when
    nothing was written.
    """
    progress = [PaymentState.VALIDATING]
    idempotency_key = (idempotency_key or "").strip() or None

    try:
        party, amount = _validate(
            party_id=party_id,
            direction=direction,
            amount=amount,
            mode=mode,
            payment_method=payment_method,
            source=source,
            bank_account_id=bank_account_id,
        )

        fingerprint = request_fingerprint(
            direction=direction,
            amount=amount,
            mode=mode,
            invoice_id=invoice_id,
            allocations=allocations,
            bank_account_id=bank_account_id,
        )
        replay = {
            "fingerprint": fingerprint,
            "direction": direction,
            "amount": amount,
            "mode": mode,
            "bank_account_id": bank_account_id,
        }

        existing = _find_duplicate(party=party, idempotency_key=idempotency_key)
        if existing is not None:
            return _replay(existing, **replay)

        if allow_advance_remainder is None:
            allow_advance_remainder = bool(_ledger_setting("ALLOW_ADVANCE_REMAINDER", True))

        progress.append(PaymentState.ALLOCATING)
        plan = resolve_allocation(
            party=party,
            direction=direction,
            amount=amount,
            mode=mode,
            invoice_id=invoice_id,
            allocations=allocations,
            allow_advance_remainder=allow_advance_remainder,
        )

        actor = _real_actor(actor)
        payment, saved_allocations = _commit(
            party=party,
            plan=plan,
            direction=direction,
            amount=amount,
            mode=mode,
            payment_method=payment_method,
            payment_date=payment_date or timezone.localdate(),
            bank_account_id=bank_account_id,
            reference=(reference or "").strip(),
            notes=notes or "",
            source=source,
            idempotency_key=idempotency_key,
            fingerprint=fingerprint,
            actor=actor,
            progress=progress,
        )
    except HARD_ERRORS as exc:
        logger.warning(
            "Payment rejected",
            extra={
                "state": PaymentState.REJECTED,
                "failed_at": progress[-1],
                "party_id": str(party_id),
                "amount": str(amount),
                "code": exc.code,
            },
        )
        raise
    except IntegrityError:
        # Lost an idempotency race: the other submission committed first.
        existing = _find_duplicate(party=party, idempotency_key=idempotency_key)
        if existing is None:
            raise
        return _replay(existing, **replay)

    warnings: list[PaymentWarning] = []

    # ---------------- bank / cash mirror ----------------
    progress.append(PaymentState.APPLYING_BANK_TRANSACTION)
    bank_txn = None
    if bank_account_id:
        outcome = run_best_effort(
            "bank_transaction",
            write_payment_transaction,
            bank_account_id=bank_account_id,
            amount=amount,
            direction=direction,
            payment=payment,
        )
        if outcome.ok:
            bank_txn = outcome.value
        else:
            warnings.append(_warning_from(outcome))

    # ---------------- notification ----------------
    outcome = run_best_effort("notification", _publish_notification, payment=payment, party=party)
    if not outcome.ok:
        warnings.append(_warning_from(outcome))

    # ---------------- audit ----------------
    progress.append(PaymentState.AUDITING)
    outcome = run_best_effort(
        "audit",
        _audit_payment,
        actor=actor,
        payment=payment,
        allocations=saved_allocations,
        bank_txn=bank_txn,
    )
    if not outcome.ok:
        warnings.append(_warning_from(outcome))

    state = PaymentState.PARTIALLY_COMPLETED if warnings else PaymentState.COMPLETED

    logger.info(
        "Payment recorded",
        extra={
            "state": state,
            "payment_id": str(payment.id),
            "payment_number": payment.payment_number,
            "party_id": str(party.id),
            "direction": direction,
            "amount": str(amount),
            "advance_remainder": str(payment.advance_remainder),
            "warnings": [w.code for w in warnings],
        },
    )

    return PaymentResult(
        payment=payment,
        allocations=_allocation_rows(saved_allocations),
        advance_remainder=payment.advance_remainder,
        party_balance=payment.party_balance_after,
        bank_transaction_created=bank_txn is not None,
        bank_transaction=_bank_snapshot(bank_txn),
        warnings=warnings,
        state=state,
    )
