# banking/models/bank_account.py

"""
BANK / CASH ACCOUNT

balance and the running counters (transaction_count, total_credits,
total_debits, last_transaction_at) are written ONLY by
banking.services.transaction_writer, as atomic deltas.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

COUNTER_FIELDS = (
    "balance",
    "transaction_count",
    "total_credits",
    "total_debits",
    "last_transaction_at",
)


class BankAccount(models.Model):
    TYPE_BANK = "bank"
    TYPE_CASH = "cash"

    TYPE_CHOICES = [
        (TYPE_BANK, "Bank"),
        (TYPE_CASH, "Cash"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=100)
    account_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_BANK)
    bank_name = models.CharField(max_length=100, blank=True, default="")
    account_number = models.CharField(max_length=40, blank=True, default="")

    opening_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    transaction_count = models.PositiveIntegerField(default=0)
    total_credits = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    total_debits = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    last_transaction_at = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})
        if self.account_type == self.TYPE_BANK and not (self.bank_name or "").strip():
            raise ValidationError({"bank_name": "bank_name is required for bank accounts"})

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.balance = self.opening_balance or Decimal("0.00")
        else:
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                kwargs["update_fields"] = [
                    f.name
                    for f in self._meta.concrete_fields
                    if not f.primary_key and f.name not in COUNTER_FIELDS
                ]
            elif set(COUNTER_FIELDS).intersection(update_fields):
                raise ValidationError("Account balance/counters move only through bank transactions")
        self.name = (self.name or "").strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.name} ({self.account_type})"
