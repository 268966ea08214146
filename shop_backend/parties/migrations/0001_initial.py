"""
======================================================
PATH: parties/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Party

Customers and suppliers share one table; the sign of current_balance says
who owes whom.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Party",
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
                    "party_type",
                    models.CharField(
                        max_length=20,
                        choices=[("customer", "Customer"), ("supplier", "Supplier")],
                        default="customer",
                    ),
                ),
                ("name", models.CharField(max_length=100)),
                ("phone", models.CharField(max_length=20, blank=True, default="")),
                ("email", models.EmailField(max_length=254, blank=True, default="")),
                (
                    "opening_balance",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "current_balance",
                    models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00")),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("deactivated_at", models.DateTimeField(null=True, blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.AddIndex(
            model_name="party",
            index=models.Index(fields=["party_type", "is_active"], name="party_type_active_idx"),
        ),
        migrations.AddIndex(
            model_name="party",
            index=models.Index(fields=["name"], name="party_name_idx"),
        ),
    ]
