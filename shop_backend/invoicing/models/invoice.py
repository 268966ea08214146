# invoicing/models/invoice.py

"""
INVOICE (SALE / PURCHASE)

One table for both sides of the business:
- kind=sale      -> the party owes us (settled by payments IN)
- kind=purchase  -> we owe the party  (settled by payments OUT)

RULES:
- total_amount is fixed once the invoice is issued.
- paid_amount moves ONLY through invoicing.services.invoice_state
  (conditional update + version bump); save() never writes it.
- due_amount / payment_status are derived, never stored.
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

TWOPLACES = Decimal("0.01")

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_PAID = "paid"


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def derive_payment_state(total, paid) -> tuple[Decimal, str]:
    """
    Pure: (total, paid) -> (due, payment_status).

    Due is clamped at zero; status thresholds are
    paid == 0 -> pending, 0 < paid < total -> partial, paid >= total -> paid.
    """
    total = _money(total)
    paid = _money(paid)

    due = total - paid
    if due < 0:
        due = Decimal("0.00")

    if paid >= total:
        return due, PAYMENT_STATUS_PAID
    if paid <= 0:
        return due, PAYMENT_STATUS_PENDING
    return due, PAYMENT_STATUS_PARTIAL


class Invoice(models.Model):
    KIND_SALE = "sale"
    KIND_PURCHASE = "purchase"

    KIND_CHOICES = [
        (KIND_SALE, "Sale"),
        (KIND_PURCHASE, "Purchase"),
    ]

    STATUS_ISSUED = "issued"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_ISSUED, "Issued"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    # Payment direction that settles each kind.
    SETTLED_BY = {
        KIND_SALE: "in",
        KIND_PURCHASE: "out",
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    party = models.ForeignKey(
        "parties.Party",
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    invoice_number = models.CharField(max_length=64)

    invoice_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)

    total_amount = models.DecimalField(max_digits=14, decimal_places=2)
    paid_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ISSUED)
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-invoice_date", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["party", "invoice_number"],
                name="uniq_invoice_number_per_party",
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="invoice_total_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__gte=0),
                name="invoice_paid_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(paid_amount__lte=F("total_amount")),
                name="invoice_paid_lte_total",
            ),
        ]
        indexes = [
            models.Index(fields=["party", "kind", "status"], name="invoice_party_kind_idx"),
            models.Index(fields=["due_date"], name="invoice_due_date_idx"),
        ]

    # ----------------------------
    # Derived
    # ----------------------------
    @property
    def due_amount(self) -> Decimal:
        return derive_payment_state(self.total_amount, self.paid_amount)[0]

    @property
    def payment_status(self) -> str:
        return derive_payment_state(self.total_amount, self.paid_amount)[1]

    @property
    def effective_due_date(self):
        return self.due_date or self.invoice_date

    @property
    def is_open(self) -> bool:
        return self.status == self.STATUS_ISSUED and self.due_amount > 0

    def is_settled_by(self, direction: str) -> bool:
        return self.SETTLED_BY.get(self.kind) == direction

    # ----------------------------
    # Validation
    # ----------------------------
    def clean(self):
        if not (self.invoice_number or "").strip():
            raise ValidationError({"invoice_number": "invoice_number is required"})

        total = _money(self.total_amount)
        paid = _money(self.paid_amount)

        if total < 0:
            raise ValidationError({"total_amount": "total_amount cannot be negative"})
        if paid < 0:
            raise ValidationError({"paid_amount": "paid_amount cannot be negative"})
        if paid > total:
            raise ValidationError({"paid_amount": "paid_amount cannot exceed total_amount"})

        if self.due_date and self.invoice_date and self.due_date < self.invoice_date:
            raise ValidationError({"due_date": "due_date cannot be before invoice_date"})

    def save(self, *args, **kwargs):
        self.invoice_number = (self.invoice_number or "").strip()

        if not self._state.adding:
            stored_total = (
                type(self).objects.filter(pk=self.pk)
                .values_list("total_amount", flat=True)
                .first()
            )
            if stored_total is not None and _money(stored_total) != _money(self.total_amount):
                raise ValidationError(
                    {"total_amount": "total_amount cannot change after the invoice is issued"}
                )

            # paid_amount / version belong to the invoice state updater.
            update_fields = kwargs.get("update_fields")
            guarded = {"paid_amount", "version", "total_amount"}
            if update_fields is None:
                kwargs["update_fields"] = [
                    f.name
                    for f in self._meta.concrete_fields
                    if not f.primary_key and f.name not in guarded
                ]
            elif guarded.intersection(update_fields):
                raise ValidationError(
                    "paid_amount / version / total_amount cannot be written through save()"
                )

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Invoices cannot be deleted; cancel them instead")

    def __str__(self):
        return f"{self.invoice_number} | {self.kind} | {self.total_amount}"
