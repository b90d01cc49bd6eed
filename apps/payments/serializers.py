from decimal import Decimal

from rest_framework import serializers

from apps.authentication.models import User
from apps.products.models import Product
from core.exceptions import ProductNotFound

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source="product.title", read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            "id",
            "order_id",
            "kind",
            "gateway",
            "affiliate",
            "buyer",
            "product",
            "product_title",
            "currency",
            "requested_amount",
            "amount",
            "commission_amount",
            "platform_fee",
            "merchant_amount",
            "status",
            "payer_id",
            "gateway_payment_id",
            "failure_reason",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields


def _affiliate_or_error(value):
    if value is None:
        return None
    affiliate = User.objects.filter(pk=value, role=User.ROLE_AFFILIATE, is_active=True).first()
    if affiliate is None:
        raise serializers.ValidationError("Unknown affiliate.")
    return affiliate


def _product_or_error(value):
    product = Product.objects.filter(pk=value).first()
    if product is None:
        raise ProductNotFound()
    return product


class CreateOrderSerializer(serializers.Serializer):
    productId = serializers.UUIDField()
    affiliateId = serializers.UUIDField(required=False, allow_null=True)

    def validate_productId(self, value):
        return _product_or_error(value)

    def validate_affiliateId(self, value):
        return _affiliate_or_error(value)


class CaptureOrderSerializer(serializers.Serializer):
    orderId = serializers.CharField(max_length=100)
    affiliateId = serializers.UUIDField(required=False, allow_null=True)

    def validate_affiliateId(self, value):
        return _affiliate_or_error(value)


class LegacyCaptureSerializer(serializers.Serializer):
    """Client-side capture report: the client already captured with PayPal."""

    orderID = serializers.CharField(max_length=100)
    payerID = serializers.CharField(max_length=100)
    paymentID = serializers.CharField(max_length=100)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    productId = serializers.UUIDField()
    userId = serializers.UUIDField(required=False, allow_null=True)
    affiliateId = serializers.UUIDField(required=False, allow_null=True)

    def validate_productId(self, value):
        return _product_or_error(value)

    def validate_userId(self, value):
        if value is None:
            return None
        return User.objects.filter(pk=value).first()

    def validate_affiliateId(self, value):
        return _affiliate_or_error(value)
