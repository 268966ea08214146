# invoicing/services/invoice_service.py

"""
INVOICE ISSUING / CANCELLATION

Issuing an invoice and moving the party balance by its total happen in one
atomic unit:
- sale invoice     -> party balance +total (they owe us more)
- purchase invoice -> party balance -total (we owe them more)

Cancellation is only allowed while nothing has been paid against the
invoice; it reverses the balance effect. Paid invoices are settled through
payments, never cancelled.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import F
from django.db.models.functions import Coalesce
from django.utils import timezone

from invoicing.models import Invoice
from parties.models import Party
from parties.services.balance_service import apply_invoice_to_party_balance

logger = logging.getLogger("ledger.invoicing")

TWOPLACES = Decimal("0.01")


class InvoiceServiceError(ValueError):
    pass


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


@transaction.atomic
def issue_invoice(
    *,
    party: Party,
    kind: str,
    invoice_number: str,
    total_amount,
    invoice_date=None,
    due_date=None,
    actor=None,
) -> Invoice:
    if kind not in {Invoice.KIND_SALE, Invoice.KIND_PURCHASE}:
        raise InvoiceServiceError("kind must be 'sale' or 'purchase'")

    total = _money(total_amount)
    if total < 0:
        raise InvoiceServiceError("total_amount cannot be negative")

    party = Party.objects.select_for_update().get(pk=party.pk)
    if not party.is_active:
        raise InvoiceServiceError("Cannot invoice an inactive party")

    number = (invoice_number or "").strip()
    if Invoice.objects.filter(party=party, invoice_number=number).exists():
        raise InvoiceServiceError("Invoice number already exists for this party")

    try:
        with transaction.atomic():
            invoice = Invoice.objects.create(
                party=party,
                kind=kind,
                invoice_number=number,
                invoice_date=invoice_date or timezone.localdate(),
                due_date=due_date,
                total_amount=total,
            )
    except IntegrityError as exc:
        raise InvoiceServiceError("Invoice number already exists for this party") from exc

    apply_invoice_to_party_balance(party=party, kind=kind, amount=total)

    logger.info(
        "Invoice issued",
        extra={
            "invoice_id": str(invoice.id),
            "party_id": str(party.id),
            "kind": kind,
            "total_amount": str(total),
        },
    )

    _audit_invoice(actor=actor, invoice=invoice, action="INVOICE_ISSUED")
    return invoice


@transaction.atomic
def cancel_invoice(*, invoice: Invoice, actor=None) -> Invoice:
    invoice = Invoice.objects.select_for_update().select_related("party").get(pk=invoice.pk)

    if invoice.status == Invoice.STATUS_CANCELLED:
        return invoice

    if _money(invoice.paid_amount) > 0:
        raise InvoiceServiceError("Cannot cancel an invoice that has payments against it")

    invoice.status = Invoice.STATUS_CANCELLED
    invoice.save(update_fields=["status", "updated_at"])

    # Reverse the issue effect: a cancelled sale no longer owes us, etc.
    reverse_kind = Invoice.KIND_PURCHASE if invoice.kind == Invoice.KIND_SALE else Invoice.KIND_SALE
    apply_invoice_to_party_balance(
        party=invoice.party,
        kind=reverse_kind,
        amount=invoice.total_amount,
    )

    logger.info(
        "Invoice cancelled",
        extra={"invoice_id": str(invoice.id), "party_id": str(invoice.party_id)},
    )

    _audit_invoice(actor=actor, invoice=invoice, action="INVOICE_CANCELLED")
    return invoice


def open_invoices_for(*, party_id, kind: str | None = None):
    """
    Issued invoices of a party that still have something due, oldest due first.

    Ordering is the greedy consumption order used by bulk payments:
    due date (falling back to invoice date), then created_at, then id.
    """
    qs = Invoice.objects.filter(
        party_id=party_id,
        status=Invoice.STATUS_ISSUED,
        paid_amount__lt=F("total_amount"),
    )
    if kind:
        qs = qs.filter(kind=kind)

    return qs.annotate(
        effective_due=Coalesce("due_date", "invoice_date"),
    ).order_by("effective_due", "created_at", "id")


def _audit_invoice(*, actor, invoice: Invoice, action: str) -> None:
    from audit.services.audit_recorder import record_audit_best_effort

    record_audit_best_effort(
        actor=actor,
        action=action,
        resource_type="Invoice",
        resource_id=invoice.pk,
        details={
            "invoice_number": invoice.invoice_number,
            "kind": invoice.kind,
            "party_id": str(invoice.party_id),
            "total_amount": str(invoice.total_amount),
        },
    )
