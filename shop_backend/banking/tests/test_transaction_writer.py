from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from banking.models import BankAccount, BankTransaction
from banking.services.transaction_writer import write_payment_transaction
from parties.models import Party
from payments.services.exceptions import BankAccountUnavailable, BankTransactionFailed
from payments.services.orchestrator import record_payment


class BankTransactionWriterTests(TestCase):
    """
    GUARANTEES:
    - money in credits the account, money out debits it
    - each row snapshots balance before/after
    - one bank transaction per payment, however often the writer is called
    """

    def setUp(self):
        self.party = Party.objects.create(name="Ravi", opening_balance="5000.00")
        self.account = BankAccount.objects.create(
            name="Current A/C",
            bank_name="State Bank",
            opening_balance="10000.00",
        )
        self.payment_in = record_payment(
            party_id=self.party.pk, direction="in", amount="1500.00", mode="advance"
        ).payment
        self.payment_out = record_payment(
            party_id=self.party.pk, direction="out", amount="400.00", mode="advance"
        ).payment

    def test_credit_snapshots_balance_and_moves_counters(self):
        txn = write_payment_transaction(
            bank_account_id=self.account.pk,
            amount=self.payment_in.amount,
            direction="in",
            payment=self.payment_in,
        )

        self.assertEqual(txn.balance_before, Decimal("10000.00"))
        self.assertEqual(txn.balance_after, Decimal("11500.00"))
        self.assertEqual(txn.transaction_type, BankTransaction.TYPE_PAYMENT_IN)
        self.assertEqual(txn.reference_number, self.payment_in.payment_number)
        self.assertEqual(txn.party_id, self.party.pk)

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("11500.00"))
        self.assertEqual(self.account.transaction_count, 1)
        self.assertEqual(self.account.total_credits, Decimal("1500.00"))
        self.assertIsNotNone(self.account.last_transaction_at)

    def test_debit_reduces_balance(self):
        txn = write_payment_transaction(
            bank_account_id=self.account.pk,
            amount=self.payment_out.amount,
            direction="out",
            payment=self.payment_out,
        )
        self.assertEqual(txn.balance_after, Decimal("9600.00"))

        self.account.refresh_from_db()
        self.assertEqual(self.account.total_debits, Decimal("400.00"))

    def test_transaction_numbers_follow_daily_sequence(self):
        first = write_payment_transaction(
            bank_account_id=self.account.pk, amount="1500.00", direction="in", payment=self.payment_in
        )
        second = write_payment_transaction(
            bank_account_id=self.account.pk, amount="400.00", direction="out", payment=self.payment_out
        )

        prefix = f"TXN-{timezone.localdate():%Y%m%d}-"
        self.assertEqual(first.transaction_number, f"{prefix}000001")
        self.assertEqual(second.transaction_number, f"{prefix}000002")

    def test_second_write_for_same_payment_returns_existing(self):
        first = write_payment_transaction(
            bank_account_id=self.account.pk, amount="1500.00", direction="in", payment=self.payment_in
        )
        again = write_payment_transaction(
            bank_account_id=self.account.pk, amount="1500.00", direction="in", payment=self.payment_in
        )

        self.assertEqual(first.pk, again.pk)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("11500.00"))
        self.assertEqual(BankTransaction.objects.count(), 1)

    def test_inactive_account_is_unavailable(self):
        self.account.is_active = False
        self.account.save()

        with self.assertRaises(BankAccountUnavailable):
            write_payment_transaction(
                bank_account_id=self.account.pk, amount="1500.00", direction="in", payment=self.payment_in
            )
        self.assertFalse(BankTransaction.objects.exists())

    def test_unexpected_failure_is_wrapped(self):
        with patch(
            "banking.services.transaction_writer.create_numbered",
            side_effect=RuntimeError("disk full"),
        ):
            with self.assertRaises(BankTransactionFailed) as ctx:
                write_payment_transaction(
                    bank_account_id=self.account.pk,
                    amount="1500.00",
                    direction="in",
                    payment=self.payment_in,
                )

        self.assertTrue(ctx.exception.retryable)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("10000.00"))

    def test_transactions_are_immutable(self):
        txn = write_payment_transaction(
            bank_account_id=self.account.pk, amount="1500.00", direction="in", payment=self.payment_in
        )
        with self.assertRaises(RuntimeError):
            txn.save()
        with self.assertRaises(RuntimeError):
            txn.delete()

    def test_account_save_cannot_touch_balance(self):
        self.account.balance = Decimal("1.00")
        self.account.name = "Renamed"
        self.account.save()

        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("10000.00"))
        self.assertEqual(self.account.name, "Renamed")
