import uuid

from django.db import models


class Payment(models.Model):
    """
    Money movement keyed by the external order id.

    ``sale`` rows come from captured purchases; ``payout`` rows record a
    settlement paid out to an affiliate.
    """

    KIND_SALE = "sale"
    KIND_PAYOUT = "payout"
    KIND_CHOICES = [
        (KIND_SALE, "Sale"),
        (KIND_PAYOUT, "Payout"),
    ]

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_id = models.CharField(max_length=100, unique=True)
    kind = models.CharField(max_length=10, choices=KIND_CHOICES, default=KIND_SALE)
    gateway = models.CharField(max_length=20, default="paypal")
    affiliate = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="attributed_payments",
    )
    buyer = models.ForeignKey(
        "authentication.User",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="purchases",
    )
    product = models.ForeignKey(
        "products.Product",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payments",
    )
    click = models.ForeignKey(
        "affiliates.ClickRecord",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payments",
    )
    currency = models.CharField(max_length=3, default="USD")
    requested_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    merchant_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payer_id = models.CharField(max_length=100, blank=True, null=True)
    gateway_payment_id = models.CharField(max_length=100, blank=True, null=True)
    failure_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} {self.order_id} ({self.status})"


class PaymentLog(models.Model):
    provider = models.CharField(max_length=50)
    event = models.CharField(max_length=50)
    reference = models.CharField(max_length=100, db_index=True)
    raw_payload = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
