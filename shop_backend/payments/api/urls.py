# payments/api/urls.py

from django.urls import path

from payments.api.views import (
    PaymentAllocationsView,
    PaymentDetailView,
    PaymentListCreateView,
)

urlpatterns = [
    path("", PaymentListCreateView.as_view(), name="payments"),
    path("<uuid:payment_id>/", PaymentDetailView.as_view(), name="payment-detail"),
    path(
        "<uuid:payment_id>/allocations/",
        PaymentAllocationsView.as_view(),
        name="payment-allocations",
    ),
]
