# banking/api/views.py

from django.core.exceptions import ValidationError as DjangoValidationError
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from banking.api.serializers import BankAccountSerializer, BankTransactionSerializer
from banking.models import BankAccount, BankTransaction
from users.permissions import CanManageLedger


class BankAccountListCreateView(GenericAPIView):
    serializer_class = BankAccountSerializer

    def get_permissions(self):
        if self.request.method == "POST":
            return [CanManageLedger()]
        return [IsAuthenticated()]

    @extend_schema(tags=["banking"], responses=BankAccountSerializer(many=True))
    def get(self, request):
        qs = BankAccount.objects.all().order_by("name")
        if request.query_params.get("include_inactive") not in {"1", "true"}:
            qs = qs.filter(is_active=True)
        return Response(
            BankAccountSerializer(qs, many=True).data, status=status.HTTP_200_OK
        )

    @extend_schema(
        tags=["banking"],
        request=BankAccountSerializer,
        responses={201: BankAccountSerializer},
    )
    def post(self, request):
        s = BankAccountSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        try:
            account = s.save()
        except DjangoValidationError as exc:
            return Response(
                {"detail": exc.message_dict if hasattr(exc, "error_dict") else exc.messages},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(
            BankAccountSerializer(account).data, status=status.HTTP_201_CREATED
        )


class BankTransactionListView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = BankTransactionSerializer

    @extend_schema(tags=["banking"], responses=BankTransactionSerializer(many=True))
    def get(self, request, account_id):
        account = get_object_or_404(BankAccount, pk=account_id)
        qs = (
            BankTransaction.objects.filter(bank_account=account)
            .select_related("party")
            .order_by("-created_at")
        )

        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(BankTransactionSerializer(page, many=True).data)
        return Response(
            BankTransactionSerializer(qs, many=True).data, status=status.HTTP_200_OK
        )
