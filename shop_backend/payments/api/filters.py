# payments/api/filters.py

import django_filters

from payments.models import Payment


class PaymentFilter(django_filters.FilterSet):
    party = django_filters.UUIDFilter(field_name="party_id")
    date_from = django_filters.DateFilter(field_name="payment_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="payment_date", lookup_expr="lte")

    class Meta:
        model = Payment
        fields = ["party", "direction", "mode", "payment_method", "bank_account"]
