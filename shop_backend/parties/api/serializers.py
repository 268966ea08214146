# parties/api/serializers.py

from rest_framework import serializers

from parties.models import Party


class PartySerializer(serializers.ModelSerializer):
    balance_label = serializers.CharField(read_only=True)

    class Meta:
        model = Party
        fields = [
            "id",
            "name",
            "party_type",
            "phone",
            "email",
            "opening_balance",
            "current_balance",
            "balance_label",
            "is_active",
            "created_at",
        ]
        read_only_fields = ("id", "current_balance", "is_active", "created_at")


class PartyCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    party_type = serializers.ChoiceField(choices=Party.TYPE_CHOICES, default=Party.TYPE_CUSTOMER)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")
    opening_balance = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, default=0
    )
