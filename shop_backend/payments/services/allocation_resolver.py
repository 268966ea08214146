# payments/services/allocation_resolver.py

"""
ALLOCATION RESOLVER

Decides how a payment amount is split across a party's invoices. Pure
decision step: reads invoices, writes nothing.

Modes:
- advance:
    whole amount is advance remainder, no invoice is touched.
- against_invoice + invoice_id:
    allocated = min(amount, due); excess becomes remainder.
- against_invoice + allocations with amounts (explicit split):
    allocated = min(requested, due) per line; sum(requested) must be
    positive and must not exceed the payment amount.
- against_invoice + allocations without amounts (ids only), or no
  targeting at all (bulk / auto):
    candidates sorted oldest due first (due_date, falling back to
    invoice_date), then created_at, then id; consumed greedily.

Whatever is not allocated is the advance remainder. It is never dropped
and never pushed onto an invoice beyond its due. When remainders are not
allowed, a leftover rejects the payment.

The plan remembers each invoice's due at read time; the invoice state
updater applies a line only if that due is still current.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError

from invoicing.models import Invoice
from invoicing.services.invoice_service import open_invoices_for
from payments.models import Payment
from payments.services.exceptions import (
    InvalidAllocation,
    InvalidInput,
    InvoiceNotFound,
    InvoiceNotOwnedByParty,
)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

DIRECTION_TO_KIND = {
    Payment.DIRECTION_IN: Invoice.KIND_SALE,
    Payment.DIRECTION_OUT: Invoice.KIND_PURCHASE,
}


def _money(v) -> Decimal:
    try:
        return Decimal(str(v if v is not None else "0.00")).quantize(
            TWOPLACES, rounding=ROUND_HALF_UP
        )
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidInput(f"Invalid amount: {v!r}", amount=v) from exc


@dataclass(frozen=True)
class AllocationLine:
    invoice: Invoice
    allocated_amount: Decimal
    due_before: Decimal

    @property
    def due_after(self) -> Decimal:
        return self.due_before - self.allocated_amount


@dataclass(frozen=True)
class AllocationPlan:
    lines: list[AllocationLine] = field(default_factory=list)
    advance_remainder: Decimal = ZERO

    @property
    def total_allocated(self) -> Decimal:
        return sum((line.allocated_amount for line in self.lines), ZERO)


@dataclass(frozen=True)
class _Request:
    invoice_id: Any
    amount: Decimal | None


# ======================================================
# PUBLIC API
# ======================================================


def resolve_allocation(
    *,
    party,
    direction: str,
    amount,
    mode: str,
    invoice_id=None,
    allocations=None,
    allow_advance_remainder: bool = True,
) -> AllocationPlan:
    amount = _money(amount)
    if amount <= 0:
        raise InvalidInput("Payment amount must be greater than zero", amount=amount)

    if direction not in DIRECTION_TO_KIND:
        raise InvalidInput(f"Unknown payment direction: {direction!r}", direction=direction)

    requests = _normalize_allocations(allocations)

    if mode == Payment.MODE_ADVANCE:
        if invoice_id or requests:
            raise InvalidInput(
                "An advance payment cannot target invoices",
                party_id=party.pk,
                invoice_id=invoice_id,
            )
        return AllocationPlan(lines=[], advance_remainder=amount)

    if mode != Payment.MODE_AGAINST_INVOICE:
        raise InvalidInput(f"Unknown payment mode: {mode!r}", mode=mode)

    if invoice_id and requests:
        raise InvalidInput("Provide either invoice_id or allocations, not both")

    if invoice_id:
        plan = _resolve_single(party=party, direction=direction, amount=amount, invoice_id=invoice_id)
    elif requests and requests[0].amount is not None:
        plan = _resolve_explicit(party=party, direction=direction, amount=amount, requests=requests)
    elif requests:
        invoices = [
            _load_invoice(party=party, direction=direction, invoice_id=r.invoice_id, amount=amount)
            for r in requests
        ]
        plan = _resolve_greedy(amount=amount, invoices=sorted(invoices, key=_oldest_due_first))
    else:
        invoices = list(
            open_invoices_for(party_id=party.pk, kind=DIRECTION_TO_KIND[direction])
        )
        plan = _resolve_greedy(amount=amount, invoices=invoices)

    if plan.advance_remainder > 0 and not allow_advance_remainder:
        raise InvalidAllocation(
            "Payment exceeds the amount due and advance remainders are not allowed",
            party_id=party.pk,
            amount=amount,
            remainder=plan.advance_remainder,
        )

    return plan


# ======================================================
# INPUT NORMALIZATION
# ======================================================


def _normalize_allocations(allocations) -> list[_Request]:
    if not allocations:
        return []

    if not isinstance(allocations, (list, tuple)):
        raise InvalidInput("allocations must be a list")

    out: list[_Request] = []
    seen = set()

    for row in allocations:
        if isinstance(row, dict):
            inv_id = row.get("invoice_id")
            raw_amount = row.get("amount")
        else:
            inv_id, raw_amount = row, None

        if not inv_id:
            raise InvalidInput("Each allocation requires invoice_id")

        key = str(inv_id)
        if key in seen:
            raise InvalidAllocation("Invoice listed more than once", invoice_id=inv_id)
        seen.add(key)

        out.append(_Request(invoice_id=inv_id, amount=None if raw_amount is None else _money(raw_amount)))

    with_amount = sum(1 for r in out if r.amount is not None)
    if with_amount not in (0, len(out)):
        raise InvalidInput("Either every allocation has an amount or none does")

    return out


def _oldest_due_first(invoice: Invoice):
    return (invoice.effective_due_date, invoice.created_at, str(invoice.pk))


# ======================================================
# LOADING / OWNERSHIP CHECKS
# ======================================================


def _load_invoice(*, party, direction: str, invoice_id, amount: Decimal) -> Invoice:
    try:
        invoice = Invoice.objects.get(pk=invoice_id)
    except (Invoice.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise InvoiceNotFound(invoice_id=invoice_id, party_id=party.pk) from exc

    if invoice.party_id != party.pk:
        raise InvoiceNotOwnedByParty(invoice_id=invoice_id, party_id=party.pk)

    if not invoice.is_settled_by(direction):
        raise InvalidAllocation(
            f"A payment '{direction}' cannot settle a {invoice.kind} invoice",
            invoice_id=invoice_id,
            direction=direction,
        )

    if invoice.status != Invoice.STATUS_ISSUED:
        raise InvalidAllocation("Invoice is cancelled", invoice_id=invoice_id)

    if invoice.due_amount <= 0 and amount > 0:
        raise InvalidAllocation(
            "Invoice is already paid",
            invoice_id=invoice_id,
            invoice_number=invoice.invoice_number,
        )

    return invoice


def _line(invoice: Invoice, allocated: Decimal) -> AllocationLine:
    return AllocationLine(
        invoice=invoice,
        allocated_amount=allocated,
        due_before=invoice.due_amount,
    )


# ======================================================
# STRATEGIES
# ======================================================


def _resolve_single(*, party, direction: str, amount: Decimal, invoice_id) -> AllocationPlan:
    invoice = _load_invoice(party=party, direction=direction, invoice_id=invoice_id, amount=amount)
    allocated = min(amount, invoice.due_amount)
    return AllocationPlan(lines=[_line(invoice, allocated)], advance_remainder=amount - allocated)


def _resolve_explicit(*, party, direction: str, amount: Decimal, requests: list[_Request]) -> AllocationPlan:
    for r in requests:
        if r.amount <= 0:
            raise InvalidAllocation(
                "Allocation amounts must be greater than zero",
                invoice_id=r.invoice_id,
                amount=r.amount,
            )

    requested_total = sum((r.amount for r in requests), ZERO)
    if requested_total > amount:
        raise InvalidAllocation(
            "Allocations exceed the payment amount",
            party_id=party.pk,
            amount=amount,
            requested=requested_total,
        )

    lines = []
    for r in requests:
        invoice = _load_invoice(party=party, direction=direction, invoice_id=r.invoice_id, amount=r.amount)
        lines.append(_line(invoice, min(r.amount, invoice.due_amount)))

    allocated_total = sum((line.allocated_amount for line in lines), ZERO)
    return AllocationPlan(lines=lines, advance_remainder=amount - allocated_total)


def _resolve_greedy(*, amount: Decimal, invoices) -> AllocationPlan:
    remaining = amount
    lines = []

    for invoice in invoices:
        if remaining <= 0:
            break
        if not invoice.is_open:
            continue
        take = min(remaining, invoice.due_amount)
        lines.append(_line(invoice, take))
        remaining -= take

    return AllocationPlan(lines=lines, advance_remainder=remaining)
