# banking/admin.py

from django.contrib import admin

from banking.models import BankAccount, BankTransaction


# ======================================================
# BANK ACCOUNT ADMIN
# ======================================================


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "account_type",
        "bank_name",
        "balance",
        "transaction_count",
        "is_active",
    )
    readonly_fields = (
        "balance",
        "transaction_count",
        "total_credits",
        "total_debits",
        "last_transaction_at",
        "created_at",
        "updated_at",
    )
    search_fields = ("name", "bank_name", "account_number")
    list_filter = ("account_type", "is_active")


# ======================================================
# BANK TRANSACTION ADMIN (read-only)
# ======================================================


@admin.register(BankTransaction)
class BankTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_number",
        "bank_account",
        "direction",
        "amount",
        "balance_after",
        "reference_number",
        "transaction_date",
    )
    search_fields = ("transaction_number", "reference_number", "reference_id")
    list_filter = ("direction", "transaction_type", "transaction_date")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
