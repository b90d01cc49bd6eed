from django.contrib import admin

from .models import Commission, Payout


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ("id", "payment", "affiliate", "amount", "platform_fee_amount", "status", "created_at")
    search_fields = ("payment__order_id", "affiliate__email")
    list_filter = ("status", "is_recurring")
    readonly_fields = ("payment", "affiliate", "amount", "status", "payout", "paid_at")


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = ("transaction_id", "affiliate", "total_amount", "commission_count", "processed_at")
    search_fields = ("affiliate__email", "transaction_id")
