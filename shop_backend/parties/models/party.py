# parties/models/party.py

"""
PARTY (CUSTOMER / SUPPLIER)

Balance sign convention (same for every party type):
- current_balance > 0  -> the party owes the business (to receive)
- current_balance < 0  -> the business owes the party (to pay)

RULES:
- current_balance starts at opening_balance and is mutated ONLY by
  parties.services.balance_service, always as an atomic delta.
- Parties are never deleted while referenced (PROTECT on every FK);
  deactivate instead.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

TWOPLACES = Decimal("0.01")


class Party(models.Model):
    TYPE_CUSTOMER = "customer"
    TYPE_SUPPLIER = "supplier"

    TYPE_CHOICES = [
        (TYPE_CUSTOMER, "Customer"),
        (TYPE_SUPPLIER, "Supplier"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    party_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_CUSTOMER)
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True, default="")
    email = models.EmailField(blank=True, default="")

    opening_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )
    current_balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    is_active = models.BooleanField(default=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["party_type", "is_active"], name="party_type_active_idx"),
            models.Index(fields=["name"], name="party_name_idx"),
        ]

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

        if self.is_active and self.deactivated_at:
            raise ValidationError(
                {"deactivated_at": "deactivated_at must be empty for an active party"}
            )

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.current_balance = Decimal(str(self.opening_balance or "0.00")).quantize(TWOPLACES)
        else:
            # current_balance is owned by the balance service (atomic deltas only).
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                kwargs["update_fields"] = [
                    f.name
                    for f in self._meta.concrete_fields
                    if not f.primary_key and f.name != "current_balance"
                ]
            elif "current_balance" in update_fields:
                raise ValidationError(
                    {"current_balance": "current_balance can only change through the balance service"}
                )
        if self.name is not None:
            self.name = self.name.strip()
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("Parties cannot be deleted; deactivate them instead")

    @property
    def balance_label(self) -> str:
        if self.current_balance > 0:
            return "to_receive"
        if self.current_balance < 0:
            return "to_pay"
        return "settled"

    def __str__(self):
        return f"{self.name} ({self.party_type})"
