# invoicing/api/serializers.py

from rest_framework import serializers

from invoicing.models import Invoice


class InvoiceSerializer(serializers.ModelSerializer):
    party_name = serializers.CharField(source="party.name", read_only=True)
    due_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    payment_status = serializers.CharField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "party",
            "party_name",
            "kind",
            "invoice_number",
            "invoice_date",
            "due_date",
            "total_amount",
            "paid_amount",
            "due_amount",
            "payment_status",
            "status",
            "version",
            "created_at",
        ]


class IssueInvoiceSerializer(serializers.Serializer):
    party_id = serializers.UUIDField()
    kind = serializers.ChoiceField(choices=Invoice.KIND_CHOICES)
    invoice_number = serializers.CharField(max_length=64)
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    invoice_date = serializers.DateField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        inv_date = attrs.get("invoice_date")
        due = attrs.get("due_date")
        if inv_date and due and due < inv_date:
            raise serializers.ValidationError({"due_date": "due_date cannot be before invoice_date"})
        return attrs
