from decimal import Decimal

from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    owner_email = serializers.EmailField(source="owner.email", read_only=True)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))

    class Meta:
        model = Product
        fields = [
            "id",
            "owner",
            "owner_email",
            "title",
            "description",
            "category",
            "price",
            "image_url",
            "is_recurring",
            "status",
            "reviewed_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "owner", "status", "reviewed_at", "created_at", "updated_at"]

    def create(self, validated_data):
        request = self.context.get("request")
        if request and request.user.is_authenticated:
            validated_data["owner"] = request.user
        validated_data["status"] = Product.STATUS_PENDING
        return super().create(validated_data)


class ProductReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["approve", "reject"])
