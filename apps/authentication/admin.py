from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import PasswordResetCode, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    fieldsets = (
        (None, {"fields": ("email", "username", "password")}),
        ("Personal info", {"fields": ("full_name", "role")}),
        ("Payouts", {"fields": ("paypal_email", "commission_balance")}),
        (
            "Roles",
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                )
            },
        ),
        ("Important dates", {"fields": ("last_login", "created_at", "updated_at")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "username", "role", "password1", "password2"),
            },
        ),
    )
    readonly_fields = ("commission_balance", "created_at", "updated_at")
    list_display = ("email", "username", "role", "commission_balance", "is_active")
    search_fields = ("email", "username", "full_name")
    list_filter = ("role", "is_active")
    ordering = ("email",)


@admin.register(PasswordResetCode)
class PasswordResetCodeAdmin(admin.ModelAdmin):
    list_display = ("email", "expires_at", "attempts", "verified_at")
    search_fields = ("email",)
