"""
======================================================
PATH: invoicing/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Invoice (sale + purchase)

Check constraints keep 0 <= paid_amount <= total_amount at the database
level as well as in Invoice.clean().
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("parties", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Invoice",
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
                    "kind",
                    models.CharField(
                        max_length=20,
                        choices=[("sale", "Sale"), ("purchase", "Purchase")],
                    ),
                ),
                ("invoice_number", models.CharField(max_length=64)),
                ("invoice_date", models.DateField()),
                ("due_date", models.DateField(null=True, blank=True)),
                ("total_amount", models.DecimalField(max_digits=14, decimal_places=2)),
                (
                    "paid_amount",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=20,
                        choices=[("issued", "Issued"), ("cancelled", "Cancelled")],
                        default="issued",
                    ),
                ),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "party",
                    models.ForeignKey(
                        to="parties.party",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                    ),
                ),
            ],
            options={
                "ordering": ["-invoice_date", "-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.UniqueConstraint(
                fields=["party", "invoice_number"],
                name="uniq_invoice_number_per_party",
            ),
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="invoice_total_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.CheckConstraint(
                condition=models.Q(paid_amount__gte=0),
                name="invoice_paid_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="invoice",
            constraint=models.CheckConstraint(
                condition=models.Q(paid_amount__lte=models.F("total_amount")),
                name="invoice_paid_lte_total",
            ),
        ),
        migrations.AddIndex(
            model_name="invoice",
            index=models.Index(fields=["party", "kind", "status"], name="invoice_party_kind_idx"),
        ),
        migrations.AddIndex(
            model_name="invoice",
            index=models.Index(fields=["due_date"], name="invoice_due_date_idx"),
        ),
    ]
