from django.contrib import admin

from .models import Ad


@admin.register(Ad)
class AdAdmin(admin.ModelAdmin):
    list_display = ("title", "weight", "is_active", "impressions", "clicks", "created_at")
    list_filter = ("is_active",)
    search_fields = ("title",)
