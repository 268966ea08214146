import uuid
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase

from invoicing.models import Invoice
from parties.models import Party
from payments.services.allocation_resolver import resolve_allocation
from payments.services.exceptions import (
    InvalidAllocation,
    InvalidInput,
    InvoiceNotFound,
    InvoiceNotOwnedByParty,
)


def make_invoice(party, number, total, *, kind=Invoice.KIND_SALE, invoice_date=None, due_date=None, paid="0.00"):
    invoice = Invoice.objects.create(
        party=party,
        kind=kind,
        invoice_number=number,
        invoice_date=invoice_date or date(2026, 1, 1),
        due_date=due_date,
        total_amount=total,
    )
    if Decimal(paid) > 0:
        Invoice.objects.filter(pk=invoice.pk).update(paid_amount=paid)
        invoice.refresh_from_db()
    return invoice


class AllocationResolverTests(TestCase):
    """
    The resolver decides the split; it never writes.
    """

    def setUp(self):
        self.party = Party.objects.create(name="Meera Stores")
        self.other = Party.objects.create(name="Someone Else")

    # =====================================================
    # ADVANCE
    # =====================================================

    def test_advance_is_all_remainder(self):
        plan = resolve_allocation(party=self.party, direction="in", amount="500.00", mode="advance")
        self.assertEqual(plan.lines, [])
        self.assertEqual(plan.advance_remainder, Decimal("500.00"))

    def test_advance_cannot_target_an_invoice(self):
        inv = make_invoice(self.party, "S-1", "100.00")
        with self.assertRaises(InvalidInput):
            resolve_allocation(
                party=self.party, direction="in", amount="50.00", mode="advance", invoice_id=inv.pk
            )

    def test_non_positive_amount_is_invalid_input(self):
        for amount in ("0", "-5.00"):
            with self.assertRaises(InvalidInput):
                resolve_allocation(party=self.party, direction="in", amount=amount, mode="advance")

    # =====================================================
    # SINGLE INVOICE
    # =====================================================

    def test_single_invoice_allocates_min_of_amount_and_due(self):
        inv = make_invoice(self.party, "S-1", "1180.00")

        under = resolve_allocation(
            party=self.party, direction="in", amount="700.00", mode="against_invoice", invoice_id=inv.pk
        )
        self.assertEqual(under.lines[0].allocated_amount, Decimal("700.00"))
        self.assertEqual(under.advance_remainder, Decimal("0.00"))

        over = resolve_allocation(
            party=self.party, direction="in", amount="2000.00", mode="against_invoice", invoice_id=inv.pk
        )
        self.assertEqual(over.lines[0].allocated_amount, Decimal("1180.00"))
        self.assertEqual(over.lines[0].due_after, Decimal("0.00"))
        self.assertEqual(over.advance_remainder, Decimal("820.00"))

    def test_overpayment_rejected_when_remainder_not_allowed(self):
        inv = make_invoice(self.party, "S-1", "1180.00")
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party,
                direction="in",
                amount="2000.00",
                mode="against_invoice",
                invoice_id=inv.pk,
                allow_advance_remainder=False,
            )

    def test_missing_invoice(self):
        with self.assertRaises(InvoiceNotFound):
            resolve_allocation(
                party=self.party,
                direction="in",
                amount="10.00",
                mode="against_invoice",
                invoice_id=uuid.uuid4(),
            )

    def test_invoice_of_another_party(self):
        inv = make_invoice(self.other, "S-1", "100.00")
        with self.assertRaises(InvoiceNotOwnedByParty):
            resolve_allocation(
                party=self.party, direction="in", amount="10.00", mode="against_invoice", invoice_id=inv.pk
            )

    def test_direction_must_match_invoice_kind(self):
        inv = make_invoice(self.party, "P-1", "100.00", kind=Invoice.KIND_PURCHASE)
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party, direction="in", amount="10.00", mode="against_invoice", invoice_id=inv.pk
            )

    def test_already_paid_invoice_cannot_be_targeted(self):
        inv = make_invoice(self.party, "S-1", "100.00", paid="100.00")
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party, direction="in", amount="10.00", mode="against_invoice", invoice_id=inv.pk
            )

    def test_cancelled_invoice_cannot_be_targeted(self):
        inv = make_invoice(self.party, "S-1", "100.00")
        Invoice.objects.filter(pk=inv.pk).update(status=Invoice.STATUS_CANCELLED)
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party, direction="in", amount="10.00", mode="against_invoice", invoice_id=inv.pk
            )

    # =====================================================
    # EXPLICIT SPLIT
    # =====================================================

    def test_explicit_split_caps_each_line_at_due(self):
        a = make_invoice(self.party, "S-1", "300.00")
        b = make_invoice(self.party, "S-2", "500.00")

        plan = resolve_allocation(
            party=self.party,
            direction="in",
            amount="900.00",
            mode="against_invoice",
            allocations=[
                {"invoice_id": a.pk, "amount": "400.00"},
                {"invoice_id": b.pk, "amount": "200.00"},
            ],
        )

        self.assertEqual([line.allocated_amount for line in plan.lines], [Decimal("300.00"), Decimal("200.00")])
        self.assertEqual(plan.advance_remainder, Decimal("400.00"))

    def test_explicit_split_above_payment_amount_is_rejected(self):
        a = make_invoice(self.party, "S-1", "300.00")
        b = make_invoice(self.party, "S-2", "500.00")
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party,
                direction="in",
                amount="100.00",
                mode="against_invoice",
                allocations=[
                    {"invoice_id": a.pk, "amount": "60.00"},
                    {"invoice_id": b.pk, "amount": "60.00"},
                ],
            )

    def test_zero_requested_amount_is_rejected(self):
        a = make_invoice(self.party, "S-1", "300.00")
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party,
                direction="in",
                amount="100.00",
                mode="against_invoice",
                allocations=[{"invoice_id": a.pk, "amount": "0.00"}],
            )

    def test_duplicate_invoice_in_split_is_rejected(self):
        a = make_invoice(self.party, "S-1", "300.00")
        with self.assertRaises(InvalidAllocation):
            resolve_allocation(
                party=self.party,
                direction="in",
                amount="100.00",
                mode="against_invoice",
                allocations=[
                    {"invoice_id": a.pk, "amount": "50.00"},
                    {"invoice_id": str(a.pk), "amount": "50.00"},
                ],
            )

    def test_mixed_split_is_invalid_input(self):
        a = make_invoice(self.party, "S-1", "300.00")
        b = make_invoice(self.party, "S-2", "500.00")
        with self.assertRaises(InvalidInput):
            resolve_allocation(
                party=self.party,
                direction="in",
                amount="100.00",
                mode="against_invoice",
                allocations=[{"invoice_id": a.pk, "amount": "50.00"}, {"invoice_id": b.pk}],
            )

    # =====================================================
    # BULK / AUTO
    # =====================================================

    def test_auto_consumes_oldest_due_first(self):
        newer = make_invoice(self.party, "S-NEW", "500.00", invoice_date=date(2026, 2, 1))
        older = make_invoice(self.party, "S-OLD", "300.00", invoice_date=date(2026, 1, 1))
        make_invoice(self.party, "P-1", "999.00", kind=Invoice.KIND_PURCHASE)

        plan = resolve_allocation(party=self.party, direction="in", amount="600.00", mode="against_invoice")

        self.assertEqual([line.invoice.pk for line in plan.lines], [older.pk, newer.pk])
        self.assertEqual([line.allocated_amount for line in plan.lines], [Decimal("300.00"), Decimal("300.00")])
        self.assertEqual(plan.advance_remainder, Decimal("0.00"))

    def test_auto_uses_due_date_before_invoice_date(self):
        a = make_invoice(self.party, "S-A", "100.00", invoice_date=date(2026, 1, 1), due_date=date(2026, 4, 1))
        b = make_invoice(self.party, "S-B", "100.00", invoice_date=date(2026, 2, 1))

        plan = resolve_allocation(party=self.party, direction="in", amount="150.00", mode="against_invoice")
        self.assertEqual([line.invoice.pk for line in plan.lines], [b.pk, a.pk])

    def test_auto_ties_break_on_creation_order(self):
        first = make_invoice(self.party, "S-1", "100.00")
        second = make_invoice(self.party, "S-2", "100.00")
        Invoice.objects.filter(pk=second.pk).update(created_at=first.created_at + timedelta(seconds=1))

        plan = resolve_allocation(party=self.party, direction="in", amount="150.00", mode="against_invoice")
        self.assertEqual([line.invoice.pk for line in plan.lines], [first.pk, second.pk])

    def test_auto_skips_paid_and_keeps_leftover_as_remainder(self):
        make_invoice(self.party, "S-PAID", "100.00", paid="100.00")
        open_inv = make_invoice(self.party, "S-OPEN", "100.00", paid="40.00")

        plan = resolve_allocation(party=self.party, direction="in", amount="100.00", mode="against_invoice")
        self.assertEqual([line.invoice.pk for line in plan.lines], [open_inv.pk])
        self.assertEqual(plan.lines[0].allocated_amount, Decimal("60.00"))
        self.assertEqual(plan.advance_remainder, Decimal("40.00"))

    def test_ids_only_list_is_sorted_and_consumed_greedily(self):
        newer = make_invoice(self.party, "S-NEW", "500.00", invoice_date=date(2026, 2, 1))
        older = make_invoice(self.party, "S-OLD", "300.00", invoice_date=date(2026, 1, 1))

        plan = resolve_allocation(
            party=self.party,
            direction="in",
            amount="400.00",
            mode="against_invoice",
            allocations=[{"invoice_id": newer.pk}, {"invoice_id": older.pk}],
        )
        self.assertEqual(
            [(line.invoice.pk, line.allocated_amount) for line in plan.lines],
            [(older.pk, Decimal("300.00")), (newer.pk, Decimal("100.00"))],
        )

    def test_resolver_does_not_write(self):
        inv = make_invoice(self.party, "S-1", "100.00")
        resolve_allocation(
            party=self.party, direction="in", amount="100.00", mode="against_invoice", invoice_id=inv.pk
        )
        inv.refresh_from_db()
        self.assertEqual(inv.paid_amount, Decimal("0.00"))
        self.assertEqual(inv.version, 0)
