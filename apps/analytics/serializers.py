from rest_framework import serializers

from .models import ActivityLog


class ActivityLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True, default=None)

    class Meta:
        model = ActivityLog
        fields = [
            "id",
            "user",
            "username",
            "action",
            "entity_type",
            "entity_id",
            "ip_address",
            "metadata",
            "created_at",
        ]
