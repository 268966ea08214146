# payments/api/views.py

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from payments.api.errors import payment_error_response
from payments.api.filters import PaymentFilter
from payments.api.serializers import PaymentSerializer, RecordPaymentSerializer
from payments.models import Payment
from payments.services.exceptions import PaymentError, PaymentNotFound
from payments.services.orchestrator import record_payment
from payments.services.queries import get_payment_allocations
from users.permissions import CanRecordPayments


class PaymentListCreateView(GenericAPIView):
    permission_classes = [CanRecordPayments]
    serializer_class = PaymentSerializer
    filterset_class = PaymentFilter

    def get_queryset(self):
        return (
            Payment.objects.select_related("party")
            .prefetch_related("allocations", "allocations__invoice")
            .order_by("-created_at")
        )

    @extend_schema(tags=["payments"], responses=PaymentSerializer(many=True))
    def get(self, request):
        qs = self.filter_queryset(self.get_queryset())

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(PaymentSerializer(page, many=True).data)
        return Response(PaymentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["payments"], request=RecordPaymentSerializer)
    def post(self, request):
        s = RecordPaymentSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        idempotency_key = data.get("idempotency_key") or request.headers.get("Idempotency-Key")

        try:
            result = record_payment(
                party_id=data["party_id"],
                direction=data["direction"],
                amount=data["amount"],
                mode=data["mode"],
                invoice_id=data.get("invoice_id"),
                allocations=data.get("allocations") or None,
                bank_account_id=data.get("bank_account_id"),
                payment_method=data.get("payment_method"),
                payment_date=data.get("payment_date"),
                reference=data.get("reference", ""),
                notes=data.get("notes", ""),
                source=data.get("source"),
                idempotency_key=idempotency_key,
                allow_advance_remainder=data.get("allow_advance_remainder"),
                actor=request.user,
            )
        except PaymentError as exc:
            return payment_error_response(exc)

        code = status.HTTP_200_OK if result.is_duplicate else status.HTTP_201_CREATED
        return Response(result.to_dict(), status=code)


class PaymentAllocationsView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["payments"])
    def get(self, request, payment_id):
        try:
            data = get_payment_allocations(payment_id=payment_id)
        except PaymentError as exc:
            return payment_error_response(exc)
        return Response(data, status=status.HTTP_200_OK)


class PaymentDetailView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer

    @extend_schema(tags=["payments"], responses=PaymentSerializer)
    def get(self, request, payment_id):
        payment = (
            Payment.objects.select_related("party")
            .prefetch_related("allocations", "allocations__invoice")
            .filter(pk=payment_id)
            .first()
        )
        if payment is None:
            return payment_error_response(PaymentNotFound(payment_id=payment_id))
        return Response(PaymentSerializer(payment).data, status=status.HTTP_200_OK)
