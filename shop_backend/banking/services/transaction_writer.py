# banking/services/transaction_writer.py

"""
BANK TRANSACTION WRITER

Mirrors a committed payment onto a bank/cash account.

- Runs in its own atomic block: a failure here never touches the payment
  that triggered it.
- Account missing/inactive -> BankAccountUnavailable; anything else that
  goes wrong -> BankTransactionFailed.
- Idempotent per payment: a second call for the same payment returns the
  existing transaction instead of posting twice.
- Balance and counters move by F() deltas; the before/after snapshot is
  read under the account row lock.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from banking.models import BankAccount, BankTransaction
from payments.services.exceptions import (
    BankAccountUnavailable,
    BankTransactionFailed,
    PaymentError,
)
from payments.services.numbering import create_numbered

logger = logging.getLogger("payments")

TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def transaction_prefix(on_date) -> str:
    return f"TXN-{on_date:%Y%m%d}-"


def write_payment_transaction(*, bank_account_id, amount, direction: str, payment) -> BankTransaction:
    try:
        return _write(
            bank_account_id=bank_account_id,
            amount=amount,
            direction=direction,
            payment=payment,
        )
    except PaymentError:
        raise
    except Exception as exc:
        logger.exception(
            "Bank transaction write failed",
            extra={
                "bank_account_id": str(bank_account_id),
                "payment_id": str(getattr(payment, "pk", "")),
            },
        )
        raise BankTransactionFailed(
            f"Bank transaction could not be written: {exc}",
            bank_account_id=bank_account_id,
            payment_id=getattr(payment, "pk", None),
        ) from exc


@transaction.atomic
def _write(*, bank_account_id, amount, direction: str, payment) -> BankTransaction:
    amount = _money(amount)
    if amount <= 0:
        raise BankTransactionFailed("Bank transaction amount must be positive", amount=amount)
    if direction not in {BankTransaction.DIRECTION_IN, BankTransaction.DIRECTION_OUT}:
        raise BankTransactionFailed("Unknown direction", direction=direction)

    existing = BankTransaction.objects.filter(
        reference_type=BankTransaction.REFERENCE_PAYMENT,
        reference_id=str(payment.pk),
    ).first()
    if existing is not None:
        return existing

    account = (
        BankAccount.objects.select_for_update()
        .filter(pk=bank_account_id, is_active=True)
        .first()
    )
    if account is None:
        raise BankAccountUnavailable(bank_account_id=bank_account_id)

    is_credit = direction == BankTransaction.DIRECTION_IN
    delta = amount if is_credit else -amount

    before = _money(account.balance)
    after = before + delta
    today = timezone.localdate()

    txn = create_numbered(
        BankTransaction,
        "transaction_number",
        transaction_prefix(today),
        bank_account=account,
        amount=amount,
        direction=direction,
        balance_before=before,
        balance_after=after,
        transaction_type=(
            BankTransaction.TYPE_PAYMENT_IN if is_credit else BankTransaction.TYPE_PAYMENT_OUT
        ),
        reference_type=BankTransaction.REFERENCE_PAYMENT,
        reference_id=str(payment.pk),
        reference_number=getattr(payment, "payment_number", "") or "",
        party_id=getattr(payment, "party_id", None),
        description=_describe(payment, is_credit),
        transaction_date=getattr(payment, "payment_date", None) or today,
    )

    counters = {
        "balance": F("balance") + delta,
        "transaction_count": F("transaction_count") + 1,
        "last_transaction_at": timezone.now(),
        "updated_at": timezone.now(),
    }
    if is_credit:
        counters["total_credits"] = F("total_credits") + amount
    else:
        counters["total_debits"] = F("total_debits") + amount

    BankAccount.objects.filter(pk=account.pk).update(**counters)

    logger.info(
        "Bank transaction written",
        extra={
            "transaction_number": txn.transaction_number,
            "bank_account_id": str(account.pk),
            "amount": str(amount),
            "direction": direction,
            "balance_after": str(after),
        },
    )
    return txn


def _describe(payment, is_credit: bool) -> str:
    number = getattr(payment, "payment_number", "") or ""
    party = getattr(payment, "party", None)
    name = getattr(party, "name", "") if party is not None else ""
    verb = "Received from" if is_credit else "Paid to"
    text = f"{verb} {name}".strip() if name else ("Payment in" if is_credit else "Payment out")
    return f"{text} ({number})" if number else text
