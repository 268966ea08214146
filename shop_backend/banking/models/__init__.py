# banking/models/__init__.py

from .bank_account import BankAccount
from .bank_transaction import BankTransaction

__all__ = ["BankAccount", "BankTransaction"]
