from django.contrib import admin

from .models import Payment, PaymentLog


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("order_id", "kind", "gateway", "status", "amount", "affiliate", "created_at")
    list_filter = ("kind", "status", "gateway")
    search_fields = ("order_id", "gateway_payment_id", "payer_id")
    readonly_fields = ("commission_amount", "platform_fee", "merchant_amount", "completed_at")


@admin.register(PaymentLog)
class PaymentLogAdmin(admin.ModelAdmin):
    list_display = ("provider", "event", "reference", "created_at")
    search_fields = ("provider", "reference")
