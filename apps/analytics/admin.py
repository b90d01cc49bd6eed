from django.contrib import admin

from .models import ActivityLog


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ("user", "action", "entity_type", "entity_id", "created_at")
    search_fields = ("user__email", "action", "entity_type", "entity_id")
    readonly_fields = ("user", "action", "entity_type", "entity_id", "ip_address", "user_agent", "metadata")
