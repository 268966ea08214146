# invoicing/admin.py

from django.contrib import admin

from invoicing.models import Invoice


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = (
        "invoice_number",
        "party",
        "kind",
        "total_amount",
        "paid_amount",
        "due_amount",
        "payment_status",
        "status",
        "invoice_date",
    )
    readonly_fields = (
        "total_amount",
        "paid_amount",
        "due_amount",
        "payment_status",
        "version",
        "created_at",
        "updated_at",
    )
    search_fields = ("invoice_number", "party__name")
    list_filter = ("kind", "status", "invoice_date")

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            # total is editable only when issuing a new invoice
            return tuple(f for f in self.readonly_fields if f != "total_amount")
        return self.readonly_fields

    def has_delete_permission(self, request, obj=None):
        return False
