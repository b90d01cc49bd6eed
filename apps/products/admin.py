from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "price", "status", "is_recurring", "created_at")
    search_fields = ("title", "owner__email")
    list_filter = ("status", "category", "is_recurring")
