# payments/models/__init__.py

"""
PAYMENTS MODELS PACKAGE EXPORTS
"""

from .payment import Payment
from .payment_allocation import PaymentAllocation

__all__ = ["Payment", "PaymentAllocation"]
