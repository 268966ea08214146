# payments/services/numbering.py

"""
SEQUENTIAL DOCUMENT NUMBERS

PAY-IN-000001, PAY-OUT-000001, TXN-20260101-000001 ...

The next number is derived from the highest existing number with the same
prefix. The column is unique, so two writers racing for the same number
collide on IntegrityError; create_numbered() retries inside a savepoint.
"""

from __future__ import annotations

from django.db import IntegrityError, transaction

MAX_ATTEMPTS = 5


def next_number(model, field: str, prefix: str, width: int = 6) -> str:
    last = (
        model.objects.filter(**{f"{field}__startswith": prefix})
        .order_by(f"-{field}")
        .values_list(field, flat=True)
        .first()
    )
    seq = 0
    if last:
        tail = last[len(prefix):]
        if tail.isdigit():
            seq = int(tail)
    return f"{prefix}{seq + 1:0{width}d}"


def create_numbered(model, field: str, prefix: str, **values):
    """Create a row whose `field` gets the next number for `prefix`."""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        values[field] = next_number(model, field, prefix)
        try:
            with transaction.atomic():
                return model.objects.create(**values)
        except IntegrityError:
            if attempt == MAX_ATTEMPTS:
                raise
            # Someone took this number; only retry when it was the number.
            if not model.objects.filter(**{field: values[field]}).exists():
                raise
