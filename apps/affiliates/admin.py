from django.contrib import admin

from .models import ClickRecord, TrackingLink


@admin.register(TrackingLink)
class TrackingLinkAdmin(admin.ModelAdmin):
    list_display = ("slug", "product", "affiliate", "created_at")
    search_fields = ("slug", "product__title", "affiliate__email")
    readonly_fields = ("slug", "destination_url")


@admin.register(ClickRecord)
class ClickRecordAdmin(admin.ModelAdmin):
    list_display = ("click_id", "link", "ip_address", "clicked_at", "is_bot")
    search_fields = ("ip_address", "user_agent", "link__slug")
    list_filter = ("is_bot",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
