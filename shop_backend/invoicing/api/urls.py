# invoicing/api/urls.py

from django.urls import path

from invoicing.api.views import InvoiceCancelView, InvoiceListCreateView

urlpatterns = [
    path("", InvoiceListCreateView.as_view(), name="invoices"),
    path(
        "<uuid:invoice_id>/cancel/",
        InvoiceCancelView.as_view(),
        name="invoice-cancel",
    ),
]
