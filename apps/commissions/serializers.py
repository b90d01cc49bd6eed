from decimal import Decimal

from rest_framework import serializers

from .models import Commission, Payout


class CommissionSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source="product.title", read_only=True, default=None)
    order_id = serializers.CharField(source="payment.order_id", read_only=True)

    class Meta:
        model = Commission
        fields = [
            "id",
            "affiliate",
            "payment",
            "order_id",
            "product",
            "product_title",
            "gross_sale_amount",
            "commission_rate",
            "amount",
            "platform_fee_rate",
            "platform_fee_amount",
            "status",
            "is_recurring",
            "payout",
            "paid_at",
            "created_at",
        ]


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = "__all__"


class SettlementRequestSerializer(serializers.Serializer):
    minimum_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=Decimal("0"))


class PayoutRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
