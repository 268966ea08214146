"""
======================================================
PATH: payments/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Payment + PaymentAllocation

Both tables are append-only. idempotency_key is unique per party when set.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("parties", "0001_initial"),
        ("invoicing", "0001_initial"),
        ("banking", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
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
                ("payment_number", models.CharField(max_length=32, unique=True)),
                (
                    "direction",
                    models.CharField(
                        max_length=3,
                        choices=[
                            ("in", "Payment in (received)"),
                            ("out", "Payment out (paid)"),
                        ],
                    ),
                ),
                ("amount", models.DecimalField(max_digits=14, decimal_places=2)),
                (
                    "mode",
                    models.CharField(
                        max_length=20,
                        choices=[
                            ("advance", "Advance"),
                            ("against_invoice", "Against invoice"),
                        ],
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        max_length=20,
                        choices=[
                            ("cash", "Cash"),
                            ("bank_transfer", "Bank transfer"),
                            ("cheque", "Cheque"),
                            ("card", "Card"),
                            ("upi", "UPI"),
                            ("other", "Other"),
                        ],
                        default="cash",
                    ),
                ),
                (
                    "payment_date",
                    models.DateField(default=django.utils.timezone.localdate),
                ),
                (
                    "advance_remainder",
                    models.DecimalField(
                        max_digits=14,
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Part of the amount not applied to any invoice.",
                    ),
                ),
                ("party_balance_before", models.DecimalField(max_digits=14, decimal_places=2)),
                ("party_balance_after", models.DecimalField(max_digits=14, decimal_places=2)),
                (
                    "source",
                    models.CharField(
                        max_length=20,
                        choices=[
                            ("manual", "Manual"),
                            ("automated", "Automated"),
                            ("imported", "Imported"),
                        ],
                        default="manual",
                    ),
                ),
                ("reference", models.CharField(max_length=128, blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("idempotency_key", models.CharField(max_length=128, null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "bank_account",
                    models.ForeignKey(
                        to="banking.bankaccount",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        to=settings.AUTH_USER_MODEL,
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="recorded_payments",
                    ),
                ),
                (
                    "party",
                    models.ForeignKey(
                        to="parties.party",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
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
                ("allocated_amount", models.DecimalField(max_digits=14, decimal_places=2)),
                ("due_before", models.DecimalField(max_digits=14, decimal_places=2)),
                ("due_after", models.DecimalField(max_digits=14, decimal_places=2)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "invoice",
                    models.ForeignKey(
                        to="invoicing.invoice",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_allocations",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        to="payments.payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.UniqueConstraint(
                fields=["party", "idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="uniq_payment_idempotency_per_party",
            ),
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ),
        migrations.AddConstraint(
            model_name="payment",
            constraint=models.CheckConstraint(
                condition=models.Q(advance_remainder__gte=0),
                name="payment_remainder_non_negative",
            ),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["party", "created_at"], name="payment_party_created_idx"),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(fields=["direction", "payment_date"], name="payment_direction_date_idx"),
        ),
        migrations.AddConstraint(
            model_name="paymentallocation",
            constraint=models.UniqueConstraint(
                fields=["payment", "invoice"],
                name="uniq_allocation_per_payment_invoice",
            ),
        ),
        migrations.AddConstraint(
            model_name="paymentallocation",
            constraint=models.CheckConstraint(
                condition=models.Q(allocated_amount__gt=0),
                name="allocation_amount_positive",
            ),
        ),
    ]
