# payments/models/payment_allocation.py

import uuid

from django.db import models
from django.db.models import Q


class PaymentAllocation(models.Model):
    """
    Immutable link between a payment and one invoice it settled.

    RULES:
    - allocated_amount > 0 and <= the invoice due at allocation time.
    - due_before / due_after snapshot the invoice around this payment.
    - Sum(allocated_amount) + payment.advance_remainder == payment.amount
      (enforced by the orchestrator).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="allocations",
    )
    invoice = models.ForeignKey(
        "invoicing.Invoice",
        on_delete=models.PROTECT,
        related_name="payment_allocations",
    )

    allocated_amount = models.DecimalField(max_digits=14, decimal_places=2)
    due_before = models.DecimalField(max_digits=14, decimal_places=2)
    due_after = models.DecimalField(max_digits=14, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["payment", "invoice"],
                name="uniq_allocation_per_payment_invoice",
            ),
            models.CheckConstraint(
                condition=Q(allocated_amount__gt=0),
                name="allocation_amount_positive",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("PaymentAllocation records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("PaymentAllocation records cannot be deleted")

    def __str__(self):
        return f"{self.payment_id} -> {self.invoice_id} | {self.allocated_amount}"
