# audit/models/audit_entry.py

"""
AUDIT ENTRY (APPEND-ONLY)

One row per business event worth explaining later (who recorded which
payment, who issued which invoice). Entries are created once and never
updated or deleted.
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class AuditEntry(models.Model):
    ACTION_PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    ACTION_PAYMENT_MADE = "PAYMENT_MADE"
    ACTION_INVOICE_ISSUED = "INVOICE_ISSUED"
    ACTION_INVOICE_CANCELLED = "INVOICE_CANCELLED"
    ACTION_BANK_TRANSACTION_CREATED = "BANK_TRANSACTION_CREATED"
    ACTION_PARTY_CREATED = "PARTY_CREATED"
    ACTION_PARTY_DEACTIVATED = "PARTY_DEACTIVATED"

    ACTION_CHOICES = [
        (ACTION_PAYMENT_RECEIVED, "Payment received"),
        (ACTION_PAYMENT_MADE, "Payment made"),
        (ACTION_INVOICE_ISSUED, "Invoice issued"),
        (ACTION_INVOICE_CANCELLED, "Invoice cancelled"),
        (ACTION_BANK_TRANSACTION_CREATED, "Bank transaction created"),
        (ACTION_PARTY_CREATED, "Party created"),
        (ACTION_PARTY_DEACTIVATED, "Party deactivated"),
    ]

    SEVERITY_LOW = "low"
    SEVERITY_MEDIUM = "medium"
    SEVERITY_HIGH = "high"
    SEVERITY_CRITICAL = "critical"

    SEVERITY_CHOICES = [
        (SEVERITY_LOW, "Low"),
        (SEVERITY_MEDIUM, "Medium"),
        (SEVERITY_HIGH, "High"),
        (SEVERITY_CRITICAL, "Critical"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    actor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_entries",
        help_text="Empty for automated actions.",
    )

    action = models.CharField(max_length=40, choices=ACTION_CHOICES)
    resource_type = models.CharField(max_length=40)
    resource_id = models.CharField(max_length=64)

    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default=SEVERITY_LOW)
    details = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["resource_type", "resource_id"], name="audit_resource_idx"),
            models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise RuntimeError("AuditEntry records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise RuntimeError("AuditEntry records cannot be deleted")

    def __str__(self):
        return f"{self.action} | {self.resource_type}:{self.resource_id}"
