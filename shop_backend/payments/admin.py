# payments/admin.py

from django.contrib import admin

from payments.models import Payment, PaymentAllocation


# ======================================================
# PAYMENT ALLOCATIONS (inline, read-only)
# ======================================================


class PaymentAllocationInline(admin.TabularInline):
    model = PaymentAllocation
    extra = 0
    can_delete = False
    readonly_fields = ("invoice", "allocated_amount", "due_before", "due_after", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


# ======================================================
# PAYMENT ADMIN (read-only; payments are recorded via the API)
# ======================================================


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "payment_number",
        "party",
        "direction",
        "amount",
        "mode",
        "advance_remainder",
        "payment_method",
        "payment_date",
    )
    search_fields = ("payment_number", "party__name", "reference")
    list_filter = ("direction", "mode", "payment_method", "payment_date")
    inlines = [PaymentAllocationInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
