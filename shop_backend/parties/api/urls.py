# parties/api/urls.py

from django.urls import path

from parties.api.views import (
    PartyBalanceCheckView,
    PartyDeactivateView,
    PartyListCreateView,
    PartyPaymentSummaryView,
    PartyPendingInvoicesView,
)

urlpatterns = [
    path("", PartyListCreateView.as_view(), name="parties"),
    path(
        "<uuid:party_id>/deactivate/",
        PartyDeactivateView.as_view(),
        name="party-deactivate",
    ),
    path(
        "<uuid:party_id>/pending-invoices/",
        PartyPendingInvoicesView.as_view(),
        name="party-pending-invoices",
    ),
    path(
        "<uuid:party_id>/payment-summary/",
        PartyPaymentSummaryView.as_view(),
        name="party-payment-summary",
    ),
    path(
        "<uuid:party_id>/balance-check/",
        PartyBalanceCheckView.as_view(),
        name="party-balance-check",
    ),
]
