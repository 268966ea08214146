# payments/api/serializers.py

from rest_framework import serializers

from payments.models import Payment, PaymentAllocation


class AllocationRequestSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, allow_null=True
    )


class RecordPaymentSerializer(serializers.Serializer):
    party_id = serializers.UUIDField()
    direction = serializers.ChoiceField(choices=Payment.DIRECTION_CHOICES)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    mode = serializers.ChoiceField(choices=Payment.MODE_CHOICES)

    invoice_id = serializers.UUIDField(required=False, allow_null=True)
    allocations = AllocationRequestSerializer(many=True, required=False)

    bank_account_id = serializers.UUIDField(required=False, allow_null=True)
    payment_method = serializers.ChoiceField(
        choices=Payment.METHOD_CHOICES, required=False, default=Payment.METHOD_CASH
    )
    payment_date = serializers.DateField(required=False, allow_null=True)

    reference = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    source = serializers.ChoiceField(
        choices=Payment.SOURCE_CHOICES, required=False, default=Payment.SOURCE_MANUAL
    )
    idempotency_key = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, max_length=128
    )
    allow_advance_remainder = serializers.BooleanField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        allocations = attrs.get("allocations") or []
        # Drop explicit nulls so "ids only" rows reach the resolver as such.
        attrs["allocations"] = [
            {k: v for k, v in row.items() if v is not None} for row in allocations
        ]
        return attrs


class PaymentAllocationSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)

    class Meta:
        model = PaymentAllocation
        fields = [
            "id",
            "invoice",
            "invoice_number",
            "allocated_amount",
            "due_before",
            "due_after",
            "created_at",
        ]


class PaymentSerializer(serializers.ModelSerializer):
    party_name = serializers.CharField(source="party.name", read_only=True)
    allocations = PaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "payment_number",
            "party",
            "party_name",
            "direction",
            "amount",
            "mode",
            "payment_method",
            "payment_date",
            "bank_account",
            "advance_remainder",
            "party_balance_before",
            "party_balance_after",
            "source",
            "reference",
            "notes",
            "created_by",
            "created_at",
            "allocations",
        ]
