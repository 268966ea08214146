# banking/api/urls.py

from django.urls import path

from banking.api.views import BankAccountListCreateView, BankTransactionListView

urlpatterns = [
    path("accounts/", BankAccountListCreateView.as_view(), name="bank-accounts"),
    path(
        "accounts/<uuid:account_id>/transactions/",
        BankTransactionListView.as_view(),
        name="bank-account-transactions",
    ),
]
