# payments/services/queries.py

"""
READ-SIDE QUERIES

Payment screens need three views that never write anything:
- what a party still owes / is owed, invoice by invoice,
- where one payment's money went,
- payment totals per party.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, DecimalField, Max, Q, Sum, Value
from django.db.models.functions import Coalesce

from invoicing.services.invoice_service import open_invoices_for
from parties.models import Party
from payments.models import Payment
from payments.services.exceptions import PartyNotFound, PaymentNotFound

ZERO = Decimal("0.00")
MONEY = DecimalField(max_digits=14, decimal_places=2)


def _get_party(party_id) -> Party:
    try:
        return Party.objects.get(pk=party_id)
    except (Party.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise PartyNotFound(party_id=party_id) from exc


def _invoice_row(inv) -> dict:
    return {
        "id": str(inv.id),
        "invoice_number": inv.invoice_number,
        "kind": inv.kind,
        "invoice_date": inv.invoice_date.isoformat(),
        "due_date": inv.due_date.isoformat() if inv.due_date else None,
        "total_amount": str(inv.total_amount),
        "paid_amount": str(inv.paid_amount),
        "due_amount": str(inv.due_amount),
        "payment_status": inv.payment_status,
    }


def get_pending_invoices(*, party_id, kind: str | None = None) -> dict:
    party = _get_party(party_id)
    invoices = list(open_invoices_for(party_id=party.pk, kind=kind))
    total_due = sum((inv.due_amount for inv in invoices), ZERO)

    return {
        "party": {
            "id": str(party.id),
            "name": party.name,
            "party_type": party.party_type,
            "current_balance": str(party.current_balance),
            "balance_label": party.balance_label,
        },
        "invoices": [_invoice_row(inv) for inv in invoices],
        "count": len(invoices),
        "total_due": str(total_due),
    }


def get_payment_allocations(*, payment_id) -> dict:
    try:
        payment = Payment.objects.select_related("party").get(pk=payment_id)
    except (Payment.DoesNotExist, DjangoValidationError, ValueError) as exc:
        raise PaymentNotFound(payment_id=payment_id) from exc

    allocations = payment.allocations.select_related("invoice").all()

    rows = []
    total_allocated = ZERO
    for a in allocations:
        total_allocated += a.allocated_amount
        row = _invoice_row(a.invoice)
        row.update(
            {
                "invoice_id": row.pop("id"),
                "allocated_amount": str(a.allocated_amount),
                "due_before": str(a.due_before),
                "due_after": str(a.due_after),
            }
        )
        rows.append(row)

    return {
        "payment": {
            "id": str(payment.id),
            "payment_number": payment.payment_number,
            "party_id": str(payment.party_id),
            "party_name": payment.party.name,
            "direction": payment.direction,
            "mode": payment.mode,
            "amount": str(payment.amount),
            "payment_date": payment.payment_date.isoformat(),
        },
        "allocations": rows,
        "total_allocated": str(total_allocated),
        "remaining_amount": str(payment.advance_remainder),
    }


def get_party_payment_summary(*, party_id) -> dict:
    party = _get_party(party_id)

    zero = Value(ZERO, output_field=MONEY)
    is_in = Q(direction=Payment.DIRECTION_IN)
    is_out = Q(direction=Payment.DIRECTION_OUT)

    agg = Payment.objects.filter(party=party).aggregate(
        total_in=Coalesce(Sum("amount", filter=is_in), zero),
        total_out=Coalesce(Sum("amount", filter=is_out), zero),
        count_in=Count("id", filter=is_in),
        count_out=Count("id", filter=is_out),
        advance_in=Coalesce(Sum("advance_remainder", filter=is_in), zero),
        advance_out=Coalesce(Sum("advance_remainder", filter=is_out), zero),
        last_payment_date=Max("payment_date"),
    )

    last = agg["last_payment_date"]
    return {
        "party_id": str(party.id),
        "party_name": party.name,
        "total_in": str(agg["total_in"]),
        "total_out": str(agg["total_out"]),
        "count_in": agg["count_in"],
        "count_out": agg["count_out"],
        "advance_in": str(agg["advance_in"]),
        "advance_out": str(agg["advance_out"]),
        "net": str(agg["total_in"] - agg["total_out"]),
        "current_balance": str(party.current_balance),
        "last_payment_date": last.isoformat() if last else None,
    }
