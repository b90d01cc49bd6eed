import uuid

from django.db import models


class Commission(models.Model):
    STATUS_PENDING = "pending"
    STATUS_PAID = "paid"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAID, "Paid"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    affiliate = models.ForeignKey(
        "authentication.User",
        on_delete=models.CASCADE,
        related_name="commissions",
    )
    # One commission per captured payment; a replayed capture cannot add a second row.
    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="commission",
    )
    product = models.ForeignKey(
        "products.Product",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="commissions",
    )
    gross_sale_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=4)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    platform_fee_rate = models.DecimalField(max_digits=5, decimal_places=4)
    platform_fee_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    is_recurring = models.BooleanField(default=False)
    payout = models.ForeignKey(
        "commissions.Payout",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="commissions",
    )
    paid_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.amount} for {self.affiliate_id} ({self.status})"


class Payout(models.Model):
    """The set of commissions paid to one affiliate in one settlement run."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    affiliate = models.ForeignKey(
        "authentication.User",
        on_delete=models.CASCADE,
        related_name="payouts",
    )
    transaction_id = models.CharField(max_length=100, unique=True)
    payout_method = models.CharField(max_length=20, default="paypal")
    destination = models.EmailField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_count = models.IntegerField()
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-processed_at"]

    def __str__(self) -> str:
        return self.transaction_id
