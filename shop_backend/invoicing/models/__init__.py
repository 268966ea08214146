# invoicing/models/__init__.py

from .invoice import Invoice, derive_payment_state

__all__ = ["Invoice", "derive_payment_state"]
