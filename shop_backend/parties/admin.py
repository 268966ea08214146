# parties/admin.py

from django.contrib import admin

from parties.models import Party


# ======================================================
# PARTY ADMIN
# ======================================================


@admin.register(Party)
class PartyAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "party_type",
        "opening_balance",
        "current_balance",
        "is_active",
        "created_at",
    )
    # Balance moves only through payments / invoices.
    readonly_fields = (
        "current_balance",
        "deactivated_at",
        "created_at",
        "updated_at",
    )
    search_fields = ("name", "phone", "email")
    list_filter = ("party_type", "is_active")

    def has_delete_permission(self, request, obj=None):
        return False
