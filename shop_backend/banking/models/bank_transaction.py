# banking/models/bank_transaction.py

"""
BANK TRANSACTION (IMMUTABLE)

Mirror of money moving through a bank/cash account. Each row snapshots the
account balance before and after it.

RULES:
- Written once, never updated or deleted.
- At most one row per referenced document (reference_type, reference_id),
  so a retried payment can never double-post to the account.
"""

import uuid

from django.db import models
from django.utils import timezone


class BankTransaction(models.Model):
    DIRECTION_IN = "in"
    DIRECTION_OUT = "out"

    DIRECTION_CHOICES = [
        (DIRECTION_IN, "In"),
        (DIRECTION_OUT, "Out"),
    ]

    TYPE_PAYMENT_IN = "payment_in"
    TYPE_PAYMENT_OUT = "payment_out"

    TYPE_CHOICES = [
        (TYPE_PAYMENT_IN, "Payment in"),
        (TYPE_PAYMENT_OUT, "Payment out"),
    ]

    REFERENCE_PAYMENT = "payment"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    transaction_number = models.CharField(max_length=32, unique=True)

    bank_account = models.ForeignKey(
        "banking.BankAccount",
        on_delete=models.PROTECT,
        related_name="transactions",
    )

    amount = models.DecimalField(max_digits=14, decimal_places=2)
    direction = models.CharField(max_length=3, choices=DIRECTION_CHOICES)

    balance_before = models.DecimalField(max_digits=14, decimal_places=2)
    balance_after = models.DecimalField(max_digits=14, decimal_places=2)

    transaction_type = models.CharField(max_length=20, choices=TYPE_CHOICES)

    reference_type = models.CharField(max_length=20, default=REFERENCE_PAYMENT)
    reference_id = models.CharField(max_length=64)
    reference_number = models.CharField(max_length=32, blank=True, default="")

    party = models.ForeignKey(
        "parties.Party",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="bank_transactions",
    )

    description = models.CharField(max_length=255, blank=True, default="")
    transaction_date = models.DateField(default=timezone.localdate)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["reference_type", "reference_id"],
                name="uniq_bank_txn_per_reference",
            ),
        ]
        indexes = [
            models.Index(fields=["bank_account", "created_at"], name="banktxn_account_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("BankTransaction records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("BankTransaction records cannot be deleted")

    def __str__(self):
        return f"{self.transaction_number} | {self.direction} | {self.amount}"
