from rest_framework import serializers

from .models import Ad


class AdSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ad
        fields = [
            "id",
            "title",
            "content",
            "image_url",
            "target_url",
            "weight",
            "is_active",
            "impressions",
            "clicks",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["impressions", "clicks", "created_at", "updated_at"]


class PublicAdSerializer(serializers.ModelSerializer):
    class Meta:
        model = Ad
        fields = ["id", "title", "content", "image_url", "target_url"]
