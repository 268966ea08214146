# invoicing/services/invoice_state.py

"""
INVOICE STATE UPDATER

Moves Invoice.paid_amount for one allocation line.

Optimistic concurrency:
- The caller (allocation resolver) read the invoice with some due amount.
- We only apply the allocation if the invoice still has exactly that due,
  i.e. paid_amount == total_amount - expected_due, in a single conditional
  UPDATE. Zero rows touched means another payment got there first.
- Every successful change bumps `version`.

No row lock is held between reading and writing; the condition on the
UPDATE is the whole guarantee.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import F
from django.utils import timezone

from invoicing.models import Invoice
from payments.services.exceptions import (
    ConcurrentModification,
    InvalidAllocation,
    InvoiceNotFound,
)

logger = logging.getLogger("payments")

TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def apply_invoice_allocation(*, invoice: Invoice, amount, expected_due) -> Invoice:
    amount = _money(amount)
    expected_due = _money(expected_due)

    if amount <= 0:
        raise InvalidAllocation(
            "Allocation amount must be greater than zero",
            invoice_id=invoice.pk,
            amount=amount,
        )
    if amount > expected_due:
        raise InvalidAllocation(
            "Allocation exceeds the invoice due amount",
            invoice_id=invoice.pk,
            amount=amount,
            due=expected_due,
        )

    expected_paid = _money(invoice.total_amount) - expected_due

    updated = Invoice.objects.filter(
        pk=invoice.pk,
        status=Invoice.STATUS_ISSUED,
        paid_amount=expected_paid,
    ).update(
        paid_amount=F("paid_amount") + amount,
        version=F("version") + 1,
        updated_at=timezone.now(),
    )

    if updated == 0:
        if not Invoice.objects.filter(pk=invoice.pk).exists():
            raise InvoiceNotFound(invoice_id=invoice.pk)

        logger.warning(
            "Invoice changed under allocation",
            extra={
                "invoice_id": str(invoice.pk),
                "expected_due": str(expected_due),
                "amount": str(amount),
            },
        )
        raise ConcurrentModification(invoice_id=invoice.pk, expected_due=expected_due)

    invoice.refresh_from_db(fields=["paid_amount", "version", "updated_at", "status"])
    return invoice
