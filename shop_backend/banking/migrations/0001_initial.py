"""
======================================================
PATH: banking/migrations/0001_initial.py
======================================================
MIGRATION: CREATE BankAccount + BankTransaction

BankTransaction is append-only and unique per referenced document.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("parties", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BankAccount",
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
                ("name", models.CharField(max_length=100)),
                (
                    "account_type",
                    models.CharField(
                        max_length=10,
                        choices=[("bank", "Bank"), ("cash", "Cash")],
                        default="bank",
                    ),
                ),
                ("bank_name", models.CharField(max_length=100, blank=True, default="")),
                ("account_number", models.CharField(max_length=40, blank=True, default="")),
                (
                    "opening_balance",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "balance",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                ("transaction_count", models.PositiveIntegerField(default=0)),
                (
                    "total_credits",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "total_debits",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                ("last_transaction_at", models.DateTimeField(null=True, blank=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="BankTransaction",
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
                ("transaction_number", models.CharField(max_length=32, unique=True)),
                ("amount", models.DecimalField(max_digits=14, decimal_places=2)),
                (
                    "direction",
                    models.CharField(max_length=3, choices=[("in", "In"), ("out", "Out")]),
                ),
                ("balance_before", models.DecimalField(max_digits=14, decimal_places=2)),
                ("balance_after", models.DecimalField(max_digits=14, decimal_places=2)),
                (
                    "transaction_type",
                    models.CharField(
                        max_length=20,
                        choices=[("payment_in", "Payment in"), ("payment_out", "Payment out")],
                    ),
                ),
                ("reference_type", models.CharField(max_length=20, default="payment")),
                ("reference_id", models.CharField(max_length=64)),
                ("reference_number", models.CharField(max_length=32, blank=True, default="")),
                ("description", models.CharField(max_length=255, blank=True, default="")),
                (
                    "transaction_date",
                    models.DateField(default=django.utils.timezone.localdate),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "bank_account",
                    models.ForeignKey(
                        to="banking.bankaccount",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                    ),
                ),
                (
                    "party",
                    models.ForeignKey(
                        to="parties.party",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bank_transactions",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="banktransaction",
            constraint=models.UniqueConstraint(
                fields=["reference_type", "reference_id"],
                name="uniq_bank_txn_per_reference",
            ),
        ),
        migrations.AddIndex(
            model_name="banktransaction",
            index=models.Index(fields=["bank_account", "created_at"], name="banktxn_account_created_idx"),
        ),
    ]
