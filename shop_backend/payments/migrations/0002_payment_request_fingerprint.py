"""
======================================================
PATH: payments/migrations/0002_payment_request_fingerprint.py
======================================================
MIGRATION: Payment.request_fingerprint

Existing rows keep an empty fingerprint; their resubmissions are compared
on the stored payment fields only.
"""

from __future__ import annotations

from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="payment",
            name="request_fingerprint",
            field=models.CharField(
                blank=True,
                default="",
                help_text="Digest of the request shape stored with idempotency_key.",
                max_length=64,
            ),
        ),
    ]
