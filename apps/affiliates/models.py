import uuid

from django.db import models


class TrackingLink(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    affiliate = models.ForeignKey(
        "authentication.User",
        on_delete=models.CASCADE,
        related_name="tracking_links",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="tracking_links",
    )
    slug = models.CharField(max_length=12, unique=True, editable=False)
    destination_url = models.TextField(editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("affiliate", "product")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.product.title} - {self.slug}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            # slug and destination are fixed once issued
            original = TrackingLink.objects.only("slug", "destination_url").get(pk=self.pk)
            self.slug = original.slug
            self.destination_url = original.destination_url
        super().save(*args, **kwargs)


class ClickRecord(models.Model):
    """One visit to a tracking link. Rows are only ever appended."""

    id = models.BigAutoField(primary_key=True)
    click_id = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    link = models.ForeignKey(
        TrackingLink,
        on_delete=models.CASCADE,
        related_name="clicks",
    )
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.TextField(blank=True, null=True)
    referrer_url = models.TextField(blank=True, null=True)
    is_bot = models.BooleanField(default=False)
    clicked_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-clicked_at"]

    def __str__(self) -> str:
        return f"{self.link.slug} @ {self.clicked_at:%Y-%m-%d %H:%M}"
