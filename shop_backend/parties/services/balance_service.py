# parties/services/balance_service.py

"""
PARTY BALANCE UPDATER

This module is the ONLY place allowed to move Party.current_balance.

Rules:
- Always an atomic signed delta (UPDATE ... SET current_balance = current_balance + delta),
  never a read-modify-write in Python, so two unrelated payments touching the
  same party cannot lose an update.
- Payment effect uses the FULL payment amount regardless of how it was split
  across invoices: invoice dues and the party balance are two views of the
  same debt and move together; the advance remainder still moves the balance.

Sign convention (see Party):
- payment IN  (money received from the party): delta = -amount
- payment OUT (money paid to the party):       delta = +amount
- SALE invoice issued:     delta = +total
- PURCHASE invoice issued: delta = -total
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from parties.models import Party

logger = logging.getLogger("ledger.balances")

TWOPLACES = Decimal("0.01")

DIRECTION_IN = "in"
DIRECTION_OUT = "out"

KIND_SALE = "sale"
KIND_PURCHASE = "purchase"


class PartyBalanceError(ValueError):
    pass


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def payment_delta(*, direction: str, amount) -> Decimal:
    amt = _money(amount)
    if direction == DIRECTION_IN:
        return -amt
    if direction == DIRECTION_OUT:
        return amt
    raise PartyBalanceError(f"Unknown payment direction: {direction!r}")


def invoice_delta(*, kind: str, amount) -> Decimal:
    amt = _money(amount)
    if kind == KIND_SALE:
        return amt
    if kind == KIND_PURCHASE:
        return -amt
    raise PartyBalanceError(f"Unknown invoice kind: {kind!r}")


@transaction.atomic
def apply_balance_delta(*, party_id, delta) -> tuple[Decimal, Decimal]:
    """
    Apply a signed delta and return (balance_before, balance_after).

    The row lock only serves to read a consistent before/after pair for
    the payment snapshot; the write itself is the F() increment.
    """
    delta = _money(delta)

    before = (
        Party.objects.select_for_update()
        .values_list("current_balance", flat=True)
        .get(pk=party_id)
    )

    Party.objects.filter(pk=party_id).update(
        current_balance=F("current_balance") + delta,
        updated_at=timezone.now(),
    )

    after = Party.objects.values_list("current_balance", flat=True).get(pk=party_id)

    logger.info(
        "Party balance moved",
        extra={
            "party_id": str(party_id),
            "delta": str(delta),
            "balance_before": str(before),
            "balance_after": str(after),
        },
    )
    return _money(before), _money(after)


def apply_payment_to_party_balance(*, party: Party, direction: str, amount) -> tuple[Decimal, Decimal]:
    before, after = apply_balance_delta(
        party_id=party.pk,
        delta=payment_delta(direction=direction, amount=amount),
    )
    party.current_balance = after
    return before, after


def apply_invoice_to_party_balance(*, party: Party, kind: str, amount) -> tuple[Decimal, Decimal]:
    before, after = apply_balance_delta(
        party_id=party.pk,
        delta=invoice_delta(kind=kind, amount=amount),
    )
    party.current_balance = after
    return before, after
