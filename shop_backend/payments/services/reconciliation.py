# payments/services/reconciliation.py

"""
PARTY BALANCE RECONCILIATION (read-only)

The party balance and the invoice dues are two views of the same debt. This
check recomputes what the balance should be from the documents and compares:

    expected = opening_balance
             + sum(due of issued SALE invoices)
             - sum(due of issued PURCHASE invoices)
             - sum(advance remainder of payments IN)
             + sum(advance remainder of payments OUT)

Drift is reported, never corrected here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.db.models import DecimalField, ExpressionWrapper, F, Sum, Value
from django.db.models.functions import Coalesce

from invoicing.models import Invoice
from payments.models import Payment

ZERO = Decimal("0.00")
MONEY = DecimalField(max_digits=14, decimal_places=2)


@dataclass(frozen=True)
class BalanceCheck:
    party_id: str
    party_name: str
    expected: Decimal
    actual: Decimal

    @property
    def drift(self) -> Decimal:
        return self.actual - self.expected

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0

    def to_dict(self) -> dict:
        return {
            "party_id": self.party_id,
            "party_name": self.party_name,
            "expected": str(self.expected),
            "actual": str(self.actual),
            "drift": str(self.drift),
            "is_consistent": self.is_consistent,
        }


def _sum(qs, expr) -> Decimal:
    return qs.aggregate(v=Coalesce(Sum(expr, output_field=MONEY), Value(ZERO, output_field=MONEY)))["v"]


def check_party_balance(party) -> BalanceCheck:
    issued = Invoice.objects.filter(party=party, status=Invoice.STATUS_ISSUED)
    due = ExpressionWrapper(F("total_amount") - F("paid_amount"), output_field=MONEY)

    sale_due = _sum(issued.filter(kind=Invoice.KIND_SALE), due)
    purchase_due = _sum(issued.filter(kind=Invoice.KIND_PURCHASE), due)

    payments = Payment.objects.filter(party=party)
    advance_in = _sum(payments.filter(direction=Payment.DIRECTION_IN), F("advance_remainder"))
    advance_out = _sum(payments.filter(direction=Payment.DIRECTION_OUT), F("advance_remainder"))

    expected = party.opening_balance + sale_due - purchase_due - advance_in + advance_out

    party.refresh_from_db(fields=["current_balance"])

    return BalanceCheck(
        party_id=str(party.pk),
        party_name=party.name,
        expected=Decimal(expected).quantize(Decimal("0.01")),
        actual=Decimal(party.current_balance).quantize(Decimal("0.01")),
    )
