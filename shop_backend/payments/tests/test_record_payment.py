import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import OperationalError
from django.test import TestCase, override_settings

from audit.models import AuditEntry
from banking.models import BankAccount, BankTransaction
from invoicing.models import Invoice
from invoicing.services.invoice_service import issue_invoice
from notifications.models import Notification
from parties.models import Party
from parties.services.party_service import deactivate_party
from payments.models import Payment, PaymentAllocation
from payments.services import orchestrator
from payments.services.exceptions import (
    AuditWriteFailed,
    BankTransactionFailed,
    ConcurrentModification,
    IdempotencyKeyReused,
    InvalidAllocation,
    InvalidInput,
    InvoiceNotOwnedByParty,
    PartyNotFound,
)
from payments.services.orchestrator import PaymentState, record_payment
from payments.services.reconciliation import check_party_balance

User = get_user_model()


class RecordPaymentTestBase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            email="cashier@example.com", password="pass", role="cashier"
        )
        self.customer = Party.objects.create(name="Meera Stores")
        self.supplier = Party.objects.create(name="Acme Supply", party_type=Party.TYPE_SUPPLIER)
        self.account = BankAccount.objects.create(
            name="Current A/C", bank_name="State Bank", opening_balance="10000.00"
        )

    def sale(self, number, total, **kwargs):
        return issue_invoice(
            party=self.customer, kind=Invoice.KIND_SALE, invoice_number=number, total_amount=total, **kwargs
        )

    def pay_in(self, amount, **kwargs):
        kwargs.setdefault("mode", Payment.MODE_AGAINST_INVOICE)
        kwargs.setdefault("actor", self.user)
        return record_payment(party_id=self.customer.pk, direction="in", amount=amount, **kwargs)

    def balance(self, party):
        party.refresh_from_db()
        return party.current_balance


# =====================================================
# END-TO-END SCENARIOS
# =====================================================


class RecordPaymentScenarioTests(RecordPaymentTestBase):
    def test_full_payment_settles_invoice(self):
        inv = self.sale("INV-1", "1180.00")

        result = self.pay_in("1180.00", invoice_id=inv.pk)

        inv.refresh_from_db()
        self.assertEqual(inv.payment_status, "paid")
        self.assertEqual(inv.due_amount, Decimal("0.00"))
        self.assertEqual(result.advance_remainder, Decimal("0.00"))
        self.assertEqual(result.state, PaymentState.COMPLETED)
        self.assertEqual(result.warnings, [])
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))

    def test_partial_payment_leaves_due(self):
        inv = self.sale("INV-1", "1180.00")

        result = self.pay_in("700.00", invoice_id=inv.pk)

        inv.refresh_from_db()
        self.assertEqual(inv.payment_status, "partial")
        self.assertEqual(inv.due_amount, Decimal("480.00"))
        self.assertEqual(result.allocations[0]["due_after"], Decimal("480.00"))
        self.assertEqual(result.allocations[0]["payment_status"], "partial")
        self.assertEqual(self.balance(self.customer), Decimal("480.00"))

    def test_overpayment_becomes_advance_and_moves_full_balance(self):
        inv = self.sale("INV-1", "1180.00")
        before = self.balance(self.customer)

        result = self.pay_in("2000.00", invoice_id=inv.pk)

        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("1180.00"))
        self.assertEqual(result.allocations[0]["allocated_amount"], Decimal("1180.00"))
        self.assertEqual(result.advance_remainder, Decimal("820.00"))
        self.assertEqual(before - self.balance(self.customer), Decimal("2000.00"))
        self.assertEqual(result.payment.party_balance_before, before)
        self.assertEqual(result.payment.party_balance_after, Decimal("-820.00"))

    def test_bulk_payment_settles_oldest_first(self):
        first = self.sale("INV-1", "300.00", invoice_date=date(2026, 1, 1))
        second = self.sale("INV-2", "500.00", invoice_date=date(2026, 1, 15))

        result = self.pay_in("600.00")

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.payment_status, "paid")
        self.assertEqual(second.paid_amount, Decimal("300.00"))
        self.assertEqual(second.due_amount, Decimal("200.00"))
        self.assertEqual(result.advance_remainder, Decimal("0.00"))
        self.assertEqual(PaymentAllocation.objects.filter(payment=result.payment).count(), 2)

    def test_advance_payment_only_moves_party_balance(self):
        inv = self.sale("INV-1", "100.00")

        result = self.pay_in("250.00", mode=Payment.MODE_ADVANCE)

        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("0.00"))
        self.assertEqual(result.allocations, [])
        self.assertEqual(result.advance_remainder, Decimal("250.00"))
        self.assertEqual(self.balance(self.customer), Decimal("-150.00"))

    def test_payment_out_settles_purchase_invoice(self):
        inv = issue_invoice(
            party=self.supplier, kind=Invoice.KIND_PURCHASE, invoice_number="P-1", total_amount="900.00"
        )

        result = record_payment(
            party_id=self.supplier.pk,
            direction="out",
            amount="900.00",
            mode="against_invoice",
            invoice_id=inv.pk,
            bank_account_id=self.account.pk,
            payment_method="bank_transfer",
        )

        inv.refresh_from_db()
        self.assertEqual(inv.payment_status, "paid")
        self.assertEqual(self.balance(self.supplier), Decimal("0.00"))
        self.assertEqual(result.payment.payment_number, "PAY-OUT-000001")
        self.assertTrue(result.bank_transaction_created)
        self.assertEqual(result.bank_transaction["balance_after"], "9100.00")


# =====================================================
# DOCUMENTS / SIDE EFFECTS
# =====================================================


class RecordPaymentSideEffectTests(RecordPaymentTestBase):
    def test_payment_numbers_are_sequential_per_direction(self):
        numbers = [self.pay_in("10.00", mode="advance").payment.payment_number for _ in range(2)]
        out = record_payment(party_id=self.supplier.pk, direction="out", amount="5.00", mode="advance")

        self.assertEqual(numbers, ["PAY-IN-000001", "PAY-IN-000002"])
        self.assertEqual(out.payment.payment_number, "PAY-OUT-000001")

    def test_bank_payment_writes_bank_transaction(self):
        inv = self.sale("INV-1", "1000.00")

        result = self.pay_in(
            "1000.00", invoice_id=inv.pk, bank_account_id=self.account.pk, payment_method="upi"
        )

        self.assertTrue(result.bank_transaction_created)
        txn = BankTransaction.objects.get(reference_id=str(result.payment.pk))
        self.assertEqual(txn.balance_after, Decimal("11000.00"))
        self.assertEqual(txn.reference_number, result.payment.payment_number)
        self.account.refresh_from_db()
        self.assertEqual(self.account.balance, Decimal("11000.00"))

    def test_cash_payment_without_account_skips_bank(self):
        result = self.pay_in("10.00", mode="advance")
        self.assertFalse(result.bank_transaction_created)
        self.assertIsNone(result.bank_transaction)
        self.assertEqual(result.warnings, [])

    def test_audit_and_notification_are_written(self):
        result = self.pay_in("10.00", mode="advance", bank_account_id=self.account.pk)

        actions = set(AuditEntry.objects.values_list("action", flat=True))
        self.assertIn(AuditEntry.ACTION_PAYMENT_RECEIVED, actions)
        self.assertIn(AuditEntry.ACTION_BANK_TRANSACTION_CREATED, actions)

        entry = AuditEntry.objects.get(action=AuditEntry.ACTION_PAYMENT_RECEIVED)
        self.assertEqual(entry.actor, self.user)
        self.assertEqual(entry.resource_id, str(result.payment.pk))

        n = Notification.objects.get()
        self.assertEqual(n.event, "payment_received")
        self.assertIn(result.payment.payment_number, n.message)

    def test_bank_failure_keeps_committed_payment(self):
        inv = self.sale("INV-1", "1180.00")

        with patch(
            "payments.services.orchestrator.write_payment_transaction",
            side_effect=BankTransactionFailed("bank ledger offline"),
        ):
            result = self.pay_in(
                "1180.00", invoice_id=inv.pk, bank_account_id=self.account.pk, payment_method="cheque"
            )

        inv.refresh_from_db()
        self.assertTrue(Payment.objects.filter(pk=result.payment.pk).exists())
        self.assertEqual(inv.payment_status, "paid")
        self.assertEqual(self.balance(self.customer), Decimal("0.00"))

        self.assertFalse(result.bank_transaction_created)
        self.assertEqual(result.state, PaymentState.PARTIALLY_COMPLETED)
        self.assertEqual([w.code for w in result.warnings], ["bank_transaction_failed"])
        self.assertFalse(BankTransaction.objects.exists())

    def test_inactive_bank_account_is_a_warning(self):
        self.account.is_active = False
        self.account.save()

        result = self.pay_in("50.00", mode="advance", bank_account_id=self.account.pk)

        self.assertFalse(result.bank_transaction_created)
        self.assertEqual([w.code for w in result.warnings], ["bank_account_unavailable"])
        self.assertEqual(self.balance(self.customer), Decimal("-50.00"))

    def test_audit_failure_is_only_a_warning(self):
        inv = self.sale("INV-1", "500.00")

        with patch(
            "payments.services.orchestrator.record_audit",
            side_effect=AuditWriteFailed("audit table locked"),
        ):
            result = self.pay_in("500.00", invoice_id=inv.pk)

        inv.refresh_from_db()
        self.assertEqual(inv.payment_status, "paid")
        self.assertEqual(result.state, PaymentState.PARTIALLY_COMPLETED)
        self.assertEqual([w.code for w in result.warnings], ["audit_write_failed"])
        self.assertFalse(
            AuditEntry.objects.filter(action=AuditEntry.ACTION_PAYMENT_RECEIVED).exists()
        )

    def test_notification_failure_is_only_a_warning(self):
        with patch(
            "payments.services.orchestrator.get_notification_sink",
            side_effect=RuntimeError("sink misconfigured"),
        ):
            result = self.pay_in("20.00", mode="advance")

        self.assertTrue(Payment.objects.filter(pk=result.payment.pk).exists())
        self.assertEqual([w.code for w in result.warnings], ["notification_failed"])

    def test_result_to_dict_is_serializable(self):
        inv = self.sale("INV-1", "100.00")
        data = self.pay_in("150.00", invoice_id=inv.pk).to_dict()

        self.assertEqual(data["payment"]["amount"], "150.00")
        self.assertEqual(data["advance_remainder"], "50.00")
        self.assertEqual(data["allocations"][0]["allocated_amount"], "100.00")
        self.assertEqual(data["allocations"][0]["payment_status"], "paid")
        self.assertEqual(data["state"], PaymentState.COMPLETED)


# =====================================================
# REJECTIONS (nothing written)
# =====================================================


class RecordPaymentRejectionTests(RecordPaymentTestBase):
    def assertNothingWritten(self, invoice=None):
        self.assertFalse(Payment.objects.exists())
        self.assertFalse(PaymentAllocation.objects.exists())
        if invoice is not None:
            invoice.refresh_from_db()
            self.assertEqual(invoice.paid_amount, Decimal("0.00"))

    def test_non_positive_amount(self):
        with self.assertRaises(InvalidInput):
            self.pay_in("0.00", mode="advance")
        self.assertNothingWritten()

    def test_unknown_party(self):
        with self.assertRaises(PartyNotFound):
            record_payment(party_id=uuid.uuid4(), direction="in", amount="10.00", mode="advance")

    def test_deactivated_party(self):
        deactivate_party(party=self.customer)
        with self.assertRaises(PartyNotFound):
            self.pay_in("10.00", mode="advance")

    def test_invoice_of_another_party(self):
        other = Party.objects.create(name="Other")
        inv = issue_invoice(party=other, kind="sale", invoice_number="X-1", total_amount="100.00")

        with self.assertRaises(InvoiceNotOwnedByParty):
            self.pay_in("10.00", invoice_id=inv.pk)
        self.assertNothingWritten(inv)

    def test_non_cash_payment_requires_bank_account(self):
        with self.assertRaises(InvalidInput):
            self.pay_in("10.00", mode="advance", payment_method="card")

    @override_settings(LEDGER={"REQUIRE_BANK_ACCOUNT_FOR_NON_CASH": False})
    def test_bank_requirement_can_be_disabled(self):
        result = self.pay_in("10.00", mode="advance", payment_method="card")
        self.assertFalse(result.bank_transaction_created)

    def test_overpayment_without_remainder_policy(self):
        inv = self.sale("INV-1", "100.00")
        with self.assertRaises(InvalidAllocation):
            self.pay_in("150.00", invoice_id=inv.pk, allow_advance_remainder=False)
        self.assertNothingWritten(inv)
        self.assertEqual(self.balance(self.customer), Decimal("100.00"))

    @override_settings(LEDGER={"ALLOW_ADVANCE_REMAINDER": False})
    def test_remainder_policy_defaults_from_settings(self):
        inv = self.sale("INV-1", "100.00")
        with self.assertRaises(InvalidAllocation):
            self.pay_in("150.00", invoice_id=inv.pk)

    def test_failure_midway_rolls_back_every_invoice(self):
        first = self.sale("INV-1", "100.00", invoice_date=date(2026, 1, 1))
        second = self.sale("INV-2", "100.00", invoice_date=date(2026, 1, 2))
        real_apply = orchestrator.apply_invoice_allocation
        calls = {"n": 0}

        def fail_on_second(**kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise ConcurrentModification(invoice_id=kwargs["invoice"].pk)
            return real_apply(**kwargs)

        with patch("payments.services.orchestrator.apply_invoice_allocation", side_effect=fail_on_second):
            with self.assertRaises(ConcurrentModification):
                self.pay_in("200.00")

        self.assertNothingWritten(first)
        self.assertNothingWritten(second)
        self.assertEqual(self.balance(self.customer), Decimal("200.00"))


# =====================================================
# IDEMPOTENCY / CONCURRENCY
# =====================================================


class RecordPaymentConcurrencyTests(RecordPaymentTestBase):
    def test_resubmission_with_same_key_returns_original(self):
        inv = self.sale("INV-1", "1000.00")

        first = self.pay_in("400.00", invoice_id=inv.pk, idempotency_key="req-1")
        again = self.pay_in("400.00", invoice_id=inv.pk, idempotency_key="req-1")

        self.assertEqual(first.payment.pk, again.payment.pk)
        self.assertTrue(again.is_duplicate)
        self.assertEqual([w.code for w in again.warnings], ["duplicate_submission"])
        self.assertEqual(Payment.objects.count(), 1)

        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("400.00"))
        self.assertEqual(self.balance(self.customer), Decimal("600.00"))

    def test_same_key_for_different_parties_is_allowed(self):
        self.pay_in("10.00", mode="advance", idempotency_key="shared")
        record_payment(
            party_id=self.supplier.pk, direction="out", amount="10.00", mode="advance", idempotency_key="shared"
        )
        self.assertEqual(Payment.objects.count(), 2)

    def test_same_key_for_a_different_payment_is_refused(self):
        inv = self.sale("INV-1", "5000.00")
        self.pay_in("100.00", mode="advance", idempotency_key="k1")

        with self.assertRaises(IdempotencyKeyReused) as ctx:
            self.pay_in("4000.00", invoice_id=inv.pk, idempotency_key="k1")

        self.assertEqual(ctx.exception.code, "idempotency_key_reused")
        self.assertEqual(Payment.objects.count(), 1)
        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("0.00"))
        self.assertEqual(self.balance(self.customer), Decimal("4900.00"))

    def test_same_key_with_different_invoice_is_refused(self):
        first = self.sale("INV-1", "100.00")
        second = self.sale("INV-2", "100.00")
        self.pay_in("100.00", invoice_id=first.pk, idempotency_key="k2")

        with self.assertRaises(IdempotencyKeyReused):
            self.pay_in("100.00", invoice_id=second.pk, idempotency_key="k2")

        second.refresh_from_db()
        self.assertEqual(second.paid_amount, Decimal("0.00"))

    def test_same_key_with_different_bank_account_is_refused(self):
        self.pay_in("10.00", mode="advance", idempotency_key="k3")
        with self.assertRaises(IdempotencyKeyReused):
            self.pay_in("10.00", mode="advance", bank_account_id=self.account.pk, idempotency_key="k3")

    def test_reordered_split_with_same_key_is_a_duplicate(self):
        a = self.sale("INV-1", "100.00")
        b = self.sale("INV-2", "100.00")
        split = [
            {"invoice_id": a.pk, "amount": "60.00"},
            {"invoice_id": b.pk, "amount": "40.00"},
        ]

        first = self.pay_in("100.00", allocations=split, idempotency_key="k4")
        again = self.pay_in("100.00", allocations=list(reversed(split)), idempotency_key="k4")

        self.assertTrue(again.is_duplicate)
        self.assertEqual(first.payment.pk, again.payment.pk)

    def test_split_lines_apply_in_invoice_key_order(self):
        invoices = [self.sale(f"INV-{i}", "100.00") for i in range(3)]
        by_key = sorted(invoices, key=lambda inv: str(inv.pk))
        requested = list(reversed(by_key))
        real_apply = orchestrator.apply_invoice_allocation
        applied_order = []

        def record_order(**kwargs):
            applied_order.append(kwargs["invoice"].pk)
            return real_apply(**kwargs)

        with patch("payments.services.orchestrator.apply_invoice_allocation", side_effect=record_order):
            result = self.pay_in(
                "300.00",
                allocations=[{"invoice_id": inv.pk, "amount": "100.00"} for inv in requested],
            )

        self.assertEqual(applied_order, [inv.pk for inv in by_key])
        # Result rows keep the order the caller asked for.
        self.assertEqual(
            [row["invoice_id"] for row in result.allocations],
            [str(inv.pk) for inv in requested],
        )

    def test_racing_payment_on_one_of_several_invoices(self):
        a = self.sale("INV-1", "300.00", invoice_date=date(2026, 1, 1))
        b = self.sale("INV-2", "500.00", invoice_date=date(2026, 1, 2))
        real_resolve = orchestrator.resolve_allocation
        raced = {"done": False}

        def resolve_then_let_rival_commit(**kwargs):
            plan = real_resolve(**kwargs)
            if not raced["done"]:
                raced["done"] = True
                self.pay_in("200.00", invoice_id=b.pk)
            return plan

        with patch(
            "payments.services.orchestrator.resolve_allocation",
            side_effect=resolve_then_let_rival_commit,
        ):
            with self.assertRaises(ConcurrentModification):
                self.pay_in(
                    "800.00",
                    allocations=[
                        {"invoice_id": b.pk, "amount": "500.00"},
                        {"invoice_id": a.pk, "amount": "300.00"},
                    ],
                )

        a.refresh_from_db()
        b.refresh_from_db()
        self.assertEqual(a.paid_amount, Decimal("0.00"))
        self.assertEqual(b.paid_amount, Decimal("200.00"))
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(self.balance(self.customer), Decimal("600.00"))

    def test_deadlock_in_unit_is_a_concurrent_modification(self):
        a = self.sale("INV-1", "100.00")
        b = self.sale("INV-2", "100.00")

        class DeadlockDetected(Exception):
            pgcode = "40P01"

        def deadlock(**kwargs):
            try:
                raise DeadlockDetected("deadlock detected")
            except DeadlockDetected as driver_exc:
                raise OperationalError("deadlock detected") from driver_exc

        with patch("payments.services.orchestrator.apply_invoice_allocation", side_effect=deadlock):
            with self.assertRaises(ConcurrentModification) as ctx:
                self.pay_in(
                    "200.00",
                    allocations=[{"invoice_id": a.pk}, {"invoice_id": b.pk}],
                )

        self.assertTrue(ctx.exception.retryable)
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(self.balance(self.customer), Decimal("200.00"))

    def test_other_database_errors_are_not_masked(self):
        inv = self.sale("INV-1", "100.00")

        with patch(
            "payments.services.orchestrator.apply_invoice_allocation",
            side_effect=OperationalError("no such table: invoicing_invoice"),
        ):
            with self.assertRaises(OperationalError):
                self.pay_in("100.00", invoice_id=inv.pk)

        self.assertFalse(Payment.objects.exists())

    def test_racing_payment_on_same_invoice(self):
        """
        Two payments read the same due amount. The one that commits first
        wins; the other fails the optimistic check and writes nothing.
        """
        inv = self.sale("INV-1", "1000.00")
        real_resolve = orchestrator.resolve_allocation
        raced = {"done": False}

        def resolve_then_let_rival_commit(**kwargs):
            plan = real_resolve(**kwargs)
            if not raced["done"]:
                raced["done"] = True
                self.pay_in("800.00", invoice_id=inv.pk)
            return plan

        with patch(
            "payments.services.orchestrator.resolve_allocation",
            side_effect=resolve_then_let_rival_commit,
        ):
            with self.assertRaises(ConcurrentModification) as ctx:
                self.pay_in("700.00", invoice_id=inv.pk)

        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(Payment.objects.count(), 1)

        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("800.00"))
        self.assertLessEqual(inv.paid_amount, inv.total_amount)
        self.assertEqual(self.balance(self.customer), Decimal("200.00"))

        # Retrying with fresh state caps at the remaining due.
        retry = self.pay_in("700.00", invoice_id=inv.pk)
        self.assertEqual(retry.allocations[0]["allocated_amount"], Decimal("200.00"))
        self.assertEqual(retry.advance_remainder, Decimal("500.00"))


# =====================================================
# BALANCE CONSISTENCY
# =====================================================


class PartyBalanceConsistencyTests(RecordPaymentTestBase):
    def test_balance_reconciles_after_mixed_sequence(self):
        a = self.sale("INV-1", "1180.00", invoice_date=date(2026, 1, 1))
        self.sale("INV-2", "300.00", invoice_date=date(2026, 1, 5))
        self.pay_in("700.00", invoice_id=a.pk)
        self.pay_in("1000.00")
        self.pay_in("250.00", mode="advance")
        record_payment(party_id=self.customer.pk, direction="out", amount="100.00", mode="advance")
        self.sale("INV-3", "90.00", invoice_date=date(2026, 2, 1))
        self.pay_in("50.00")

        check = check_party_balance(self.customer)
        self.assertTrue(check.is_consistent, check.to_dict())
        self.assertEqual(check.actual, self.balance(self.customer))

    def test_supplier_balance_reconciles(self):
        inv = issue_invoice(
            party=self.supplier, kind="purchase", invoice_number="P-1", total_amount="800.00"
        )
        record_payment(
            party_id=self.supplier.pk, direction="out", amount="1000.00", mode="against_invoice", invoice_id=inv.pk
        )

        check = check_party_balance(self.supplier)
        self.assertTrue(check.is_consistent, check.to_dict())
        self.assertEqual(check.actual, Decimal("200.00"))
