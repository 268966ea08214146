"""
======================================================
PATH: audit/migrations/0001_initial.py
======================================================
MIGRATION: CREATE AuditEntry (append-only)
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AuditEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                (
                    "action",
                    models.CharField(
                        max_length=40,
                        choices=[
                            ("PAYMENT_RECEIVED", "Payment received"),
                            ("PAYMENT_MADE", "Payment made"),
                            ("INVOICE_ISSUED", "Invoice issued"),
                            ("INVOICE_CANCELLED", "Invoice cancelled"),
                            ("BANK_TRANSACTION_CREATED", "Bank transaction created"),
                            ("PARTY_CREATED", "Party created"),
                            ("PARTY_DEACTIVATED", "Party deactivated"),
                        ],
                    ),
                ),
                ("resource_type", models.CharField(max_length=40)),
                ("resource_id", models.CharField(max_length=64)),
                (
                    "severity",
                    models.CharField(
                        max_length=10,
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("critical", "Critical"),
                        ],
                        default="low",
                    ),
                ),
                ("details", models.JSONField(default=dict, blank=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "actor",
                    models.ForeignKey(
                        to=settings.AUTH_USER_MODEL,
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_entries",
                        help_text="Empty for automated actions.",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="auditentry",
            index=models.Index(fields=["resource_type", "resource_id"], name="audit_resource_idx"),
        ),
        migrations.AddIndex(
            model_name="auditentry",
            index=models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
        ),
    ]
