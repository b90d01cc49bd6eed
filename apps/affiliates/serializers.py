from rest_framework import serializers

from apps.products.models import Product

from .models import ClickRecord, TrackingLink
from .services import tracking_url_for


class TrackingLinkSerializer(serializers.ModelSerializer):
    product_title = serializers.CharField(source="product.title", read_only=True)
    tracking_url = serializers.SerializerMethodField()
    click_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = TrackingLink
        fields = [
            "id",
            "affiliate",
            "product",
            "product_title",
            "slug",
            "destination_url",
            "tracking_url",
            "click_count",
            "created_at",
        ]
        read_only_fields = fields

    def get_tracking_url(self, link: TrackingLink) -> str:
        return tracking_url_for(link)


class GenerateLinkSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()

    def validate_product_id(self, value):
        product = Product.objects.filter(id=value).first()
        if product is None:
            raise serializers.ValidationError("Product not found.")
        return product


class ClickRecordSerializer(serializers.ModelSerializer):
    slug = serializers.CharField(source="link.slug", read_only=True)

    class Meta:
        model = ClickRecord
        fields = ["click_id", "slug", "ip_address", "user_agent", "is_bot", "clicked_at"]
