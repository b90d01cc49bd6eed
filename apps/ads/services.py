from __future__ import annotations

import random

from django.db.models import F

from .models import Ad


def choose_ad(rng: random.Random | None = None) -> Ad | None:
    """Pick one active ad at random, proportionally to its weight."""
    ads = list(Ad.objects.filter(is_active=True, weight__gt=0))
    if not ads:
        return None
    rng = rng or random
    return rng.choices(ads, weights=[ad.weight for ad in ads], k=1)[0]


def record_impression(ad: Ad) -> None:
    Ad.objects.filter(pk=ad.pk).update(impressions=F("impressions") + 1)


def record_ad_click(ad: Ad) -> str:
    Ad.objects.filter(pk=ad.pk).update(clicks=F("clicks") + 1)
    return ad.target_url
