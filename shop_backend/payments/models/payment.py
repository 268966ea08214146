# payments/models/payment.py

"""
PAYMENT (IMMUTABLE)

Money received from (direction=in) or paid to (direction=out) a party.

RULES:
- Created once by payments.services.orchestrator.record_payment, after the
  invoices and the party balance have been moved in the same transaction.
- Never updated, never deleted. Corrections are new documents.
- idempotency_key is unique per party: a resubmitted request finds the
  original payment instead of creating a second one.
- request_fingerprint records what was asked for under that key, so a key
  reused for a different payment is refused instead of answered with the
  original.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Payment(models.Model):
    DIRECTION_IN = "in"
    DIRECTION_OUT = "out"

    DIRECTION_CHOICES = [
        (DIRECTION_IN, "Payment in (received)"),
        (DIRECTION_OUT, "Payment out (paid)"),
    ]

    MODE_ADVANCE = "advance"
    MODE_AGAINST_INVOICE = "against_invoice"

    MODE_CHOICES = [
        (MODE_ADVANCE, "Advance"),
        (MODE_AGAINST_INVOICE, "Against invoice"),
    ]

    METHOD_CASH = "cash"
    METHOD_BANK_TRANSFER = "bank_transfer"
    METHOD_CHEQUE = "cheque"
    METHOD_CARD = "card"
    METHOD_UPI = "upi"
    METHOD_OTHER = "other"

    METHOD_CHOICES = [
        (METHOD_CASH, "Cash"),
        (METHOD_BANK_TRANSFER, "Bank transfer"),
        (METHOD_CHEQUE, "Cheque"),
        (METHOD_CARD, "Card"),
        (METHOD_UPI, "UPI"),
        (METHOD_OTHER, "Other"),
    ]

    SOURCE_MANUAL = "manual"
    SOURCE_AUTOMATED = "automated"
    SOURCE_IMPORTED = "imported"

    SOURCE_CHOICES = [
        (SOURCE_MANUAL, "Manual"),
        (SOURCE_AUTOMATED, "Automated"),
        (SOURCE_IMPORTED, "Imported"),
    ]

    NUMBER_PREFIX = {
        DIRECTION_IN: "PAY-IN-",
        DIRECTION_OUT: "PAY-OUT-",
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment_number = models.CharField(max_length=32, unique=True)

    party = models.ForeignKey(
        "parties.Party",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    direction = models.CharField(max_length=3, choices=DIRECTION_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    mode = models.CharField(max_length=20, choices=MODE_CHOICES)

    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=METHOD_CASH)
    payment_date = models.DateField(default=timezone.localdate)

    bank_account = models.ForeignKey(
        "banking.BankAccount",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )

    advance_remainder = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Part of the amount not applied to any invoice.",
    )

    party_balance_before = models.DecimalField(max_digits=14, decimal_places=2)
    party_balance_after = models.DecimalField(max_digits=14, decimal_places=2)

    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=SOURCE_MANUAL)
    reference = models.CharField(max_length=128, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    idempotency_key = models.CharField(max_length=128, null=True, blank=True)
    request_fingerprint = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Digest of the request shape stored with idempotency_key.",
    )

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recorded_payments",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["party", "idempotency_key"],
                condition=Q(idempotency_key__isnull=False),
                name="uniq_payment_idempotency_per_party",
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(advance_remainder__gte=0),
                name="payment_remainder_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["party", "created_at"], name="payment_party_created_idx"),
            models.Index(fields=["direction", "payment_date"], name="payment_direction_date_idx"),
        ]

    @property
    def allocated_amount(self) -> Decimal:
        return self.amount - self.advance_remainder

    def clean(self):
        if self.amount is not None and self.amount <= 0:
            raise ValidationError({"amount": "amount must be greater than zero"})
        if self.advance_remainder is not None and self.amount is not None:
            if self.advance_remainder < 0 or self.advance_remainder > self.amount:
                raise ValidationError(
                    {"advance_remainder": "advance_remainder must be between 0 and amount"}
                )
        if self.mode == self.MODE_ADVANCE and self.advance_remainder != self.amount:
            raise ValidationError(
                {"advance_remainder": "an advance payment is remainder in full"}
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("Payment records are immutable")
        # Uniqueness is left to the database so racing writers surface as IntegrityError.
        self.full_clean(validate_unique=False, validate_constraints=False)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Payment records cannot be deleted")

    def __str__(self):
        return f"{self.payment_number} | {self.direction} | {self.amount}"
