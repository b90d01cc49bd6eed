from django.db import models


class Ad(models.Model):
    title = models.CharField(max_length=255)
    content = models.TextField(blank=True, default="")
    image_url = models.TextField(blank=True, null=True)
    target_url = models.TextField()
    # Relative share of impressions among active ads.
    weight = models.PositiveIntegerField(default=1)
    is_active = models.BooleanField(default=True)
    impressions = models.PositiveIntegerField(default=0)
    clicks = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title
