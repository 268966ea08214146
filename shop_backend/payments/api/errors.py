# payments/api/errors.py

from rest_framework import status
from rest_framework.response import Response

from payments.services.exceptions import (
    ConcurrentModification,
    IdempotencyKeyReused,
    InvoiceNotFound,
    PartyNotFound,
    PaymentError,
    PaymentNotFound,
)

CONFLICT_ERRORS = (ConcurrentModification, IdempotencyKeyReused)
NOT_FOUND_ERRORS = (PartyNotFound, PaymentNotFound, InvoiceNotFound)


def status_for(exc: PaymentError) -> int:
    if isinstance(exc, CONFLICT_ERRORS):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, NOT_FOUND_ERRORS):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_400_BAD_REQUEST


def payment_error_response(exc: PaymentError) -> Response:
    return Response(exc.to_dict(), status=status_for(exc))
