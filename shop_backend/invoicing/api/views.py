# invoicing/api/views.py

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from invoicing.api.serializers import InvoiceSerializer, IssueInvoiceSerializer
from invoicing.models import Invoice
from invoicing.services.invoice_service import (
    InvoiceServiceError,
    cancel_invoice,
    issue_invoice,
)
from parties.models import Party
from users.permissions import CanManageLedger


class InvoiceListCreateView(GenericAPIView):
    serializer_class = InvoiceSerializer

    def get_permissions(self):
        if self.request.method == "POST":
            return [CanManageLedger()]
        return [IsAuthenticated()]

    @extend_schema(tags=["invoices"], responses=InvoiceSerializer(many=True))
    def get(self, request):
        qs = Invoice.objects.select_related("party").order_by("-invoice_date", "-created_at")

        party_id = request.query_params.get("party")
        if party_id:
            qs = qs.filter(party_id=party_id)
        kind = request.query_params.get("kind")
        if kind:
            qs = qs.filter(kind=kind)
        inv_status = request.query_params.get("status")
        if inv_status:
            qs = qs.filter(status=inv_status)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(InvoiceSerializer(page, many=True).data)
        return Response(InvoiceSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["invoices"],
        request=IssueInvoiceSerializer,
        responses={201: InvoiceSerializer},
    )
    def post(self, request):
        s = IssueInvoiceSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            party = Party.objects.get(id=data["party_id"])
        except Party.DoesNotExist:
            return Response({"detail": "Party not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            invoice = issue_invoice(
                party=party,
                kind=data["kind"],
                invoice_number=data["invoice_number"],
                total_amount=data["total_amount"],
                invoice_date=data.get("invoice_date"),
                due_date=data.get("due_date"),
                actor=request.user,
            )
        except (InvoiceServiceError, DjangoValidationError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


class InvoiceCancelView(GenericAPIView):
    permission_classes = [CanManageLedger]

    @extend_schema(tags=["invoices"], request=None, responses=InvoiceSerializer)
    def post(self, request, invoice_id):
        try:
            invoice = Invoice.objects.get(id=invoice_id)
        except Invoice.DoesNotExist:
            return Response({"detail": "Invoice not found"}, status=status.HTTP_404_NOT_FOUND)

        try:
            invoice = cancel_invoice(invoice=invoice, actor=request.user)
        except InvoiceServiceError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_200_OK)
