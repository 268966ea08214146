# parties/api/views.py

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from parties.api.serializers import PartyCreateSerializer, PartySerializer
from parties.models import Party
from parties.services.party_service import PartyServiceError, create_party, deactivate_party
from payments.api.errors import payment_error_response
from payments.services.exceptions import PartyNotFound, PaymentError
from payments.services.queries import get_party_payment_summary, get_pending_invoices
from payments.services.reconciliation import check_party_balance
from users.permissions import CanManageLedger


def _get_party_or_error(party_id):
    try:
        return Party.objects.get(pk=party_id)
    except Party.DoesNotExist as exc:
        raise PartyNotFound(party_id=party_id) from exc


class PartyListCreateView(GenericAPIView):
    serializer_class = PartySerializer

    def get_permissions(self):
        if self.request.method == "POST":
            return [CanManageLedger()]
        return [IsAuthenticated()]

    @extend_schema(tags=["parties"], responses=PartySerializer(many=True))
    def get(self, request):
        qs = Party.objects.all().order_by("name")

        party_type = request.query_params.get("party_type")
        if party_type:
            qs = qs.filter(party_type=party_type)
        if request.query_params.get("include_inactive") not in {"1", "true"}:
            qs = qs.filter(is_active=True)

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(PartySerializer(page, many=True).data)
        return Response(PartySerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["parties"],
        request=PartyCreateSerializer,
        responses={201: PartySerializer},
    )
    def post(self, request):
        s = PartyCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            party = create_party(actor=request.user, **s.validated_data)
        except (PartyServiceError, DjangoValidationError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(PartySerializer(party).data, status=status.HTTP_201_CREATED)


class PartyDeactivateView(GenericAPIView):
    permission_classes = [CanManageLedger]

    @extend_schema(tags=["parties"], request=None, responses=PartySerializer)
    def post(self, request, party_id):
        try:
            party = _get_party_or_error(party_id)
        except PaymentError as exc:
            return payment_error_response(exc)

        party = deactivate_party(party=party, actor=request.user)
        return Response(PartySerializer(party).data, status=status.HTTP_200_OK)


class PartyPendingInvoicesView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["parties"])
    def get(self, request, party_id):
        try:
            data = get_pending_invoices(
                party_id=party_id,
                kind=request.query_params.get("kind") or None,
            )
        except PaymentError as exc:
            return payment_error_response(exc)
        return Response(data, status=status.HTTP_200_OK)


class PartyPaymentSummaryView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["parties"])
    def get(self, request, party_id):
        try:
            data = get_party_payment_summary(party_id=party_id)
        except PaymentError as exc:
            return payment_error_response(exc)
        return Response(data, status=status.HTTP_200_OK)


class PartyBalanceCheckView(GenericAPIView):
    permission_classes = [CanManageLedger]

    @extend_schema(tags=["parties"])
    def get(self, request, party_id):
        try:
            party = _get_party_or_error(party_id)
        except PaymentError as exc:
            return payment_error_response(exc)
        return Response(check_party_balance(party).to_dict(), status=status.HTTP_200_OK)
