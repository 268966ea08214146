# banking/api/serializers.py

from rest_framework import serializers

from banking.models import BankAccount, BankTransaction


class BankAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = BankAccount
        fields = "__all__"
        read_only_fields = (
            "id",
            "balance",
            "transaction_count",
            "total_credits",
            "total_debits",
            "last_transaction_at",
            "created_at",
            "updated_at",
        )


class BankTransactionSerializer(serializers.ModelSerializer):
    party_name = serializers.CharField(source="party.name", read_only=True, default=None)

    class Meta:
        model = BankTransaction
        fields = [
            "id",
            "transaction_number",
            "bank_account",
            "amount",
            "direction",
            "balance_before",
            "balance_after",
            "transaction_type",
            "reference_type",
            "reference_id",
            "reference_number",
            "party",
            "party_name",
            "description",
            "transaction_date",
            "created_at",
        ]
