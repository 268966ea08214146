# payments/services/exceptions.py

"""
PAYMENT ENGINE ERRORS

Centralized domain errors for the payment allocation / reconciliation engine.

Two families:
- Hard errors abort RecordPayment before anything is committed.
- Soft errors happen after the financial unit is committed (bank mirror,
  audit trail, notifications). They are caught by the orchestrator and
  surfaced as warnings on an otherwise successful result.

Every error carries enough context for a caller to render an actionable
message (party id, requested amount, conflicting invoice id).
"""

from __future__ import annotations


class PaymentError(Exception):
    """Base exception for all payment engine failures."""

    code = "payment_error"
    retryable = False

    def __init__(self, message: str = "", **context):
        message = message or (self.__class__.__doc__ or self.code).strip()
        super().__init__(message)
        self.message = message
        self.context = {k: (str(v) if v is not None else None) for k, v in context.items()}

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "context": self.context,
        }


# ============================================================
# HARD ERRORS (nothing written)
# ============================================================


class InvalidInput(PaymentError):
    """Non-positive amount, missing or malformed field."""

    code = "invalid_input"


class PartyNotFound(PaymentError):
    """Party does not exist or is deactivated."""

    code = "party_not_found"


class PaymentNotFound(PaymentError):
    """Payment does not exist."""

    code = "payment_not_found"


class InvoiceNotFound(PaymentError):
    """Referenced invoice does not exist."""

    code = "invoice_not_found"


class InvoiceNotOwnedByParty(InvoiceNotFound):
    """Referenced invoice belongs to a different party."""

    code = "invoice_not_owned_by_party"


class InvalidAllocation(PaymentError):
    """Requested split does not reconcile or targets a settled invoice."""

    code = "invalid_allocation"


class ConcurrentModification(PaymentError):
    """Invoice changed between allocation and commit; reload and retry."""

    code = "concurrent_modification"
    retryable = True


class IdempotencyKeyReused(PaymentError):
    """Idempotency key already used for a different payment."""

    code = "idempotency_key_reused"


# ============================================================
# SOFT ERRORS (downgraded to warnings)
# ============================================================


class BankTransactionFailed(PaymentError):
    """Bank/cash ledger entry could not be written."""

    code = "bank_transaction_failed"
    retryable = True


class BankAccountUnavailable(BankTransactionFailed):
    """Bank/cash account missing or inactive."""

    code = "bank_account_unavailable"
    retryable = False


class AuditWriteFailed(PaymentError):
    """Audit entry could not be written."""

    code = "audit_write_failed"


class NotificationFailed(PaymentError):
    """Notification could not be published."""

    code = "notification_failed"


HARD_ERRORS = (
    InvalidInput,
    PartyNotFound,
    PaymentNotFound,
    InvoiceNotFound,
    InvalidAllocation,
    ConcurrentModification,
    IdempotencyKeyReused,
)
