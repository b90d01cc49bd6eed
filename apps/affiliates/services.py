from __future__ import annotations

import logging
import secrets
import string
import uuid
from dataclasses import dataclass

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.analytics.services import is_bot_user_agent
from apps.authentication.models import User
from apps.products.models import Product
from core.exceptions import LinkNotFound, ProductNotEligible

from .models import ClickRecord, TrackingLink

logger = logging.getLogger(__name__)

ALPHABET = string.ascii_letters + string.digits
SLUG_LENGTH = 8
MAX_SLUG_ATTEMPTS = 5


@dataclass(frozen=True)
class ClientMeta:
    ip_address: str | None = None
    user_agent: str = ""
    referrer: str = ""


def generate_unique_slug(length: int = SLUG_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def _public_base_url() -> str:
    return settings.ACEOS_PUBLIC_BASE_URL.rstrip("/")


def destination_url_for(product: Product) -> str:
    return f"{_public_base_url()}/products/view/{product.id}"


def tracking_url_for(link: TrackingLink) -> str:
    return f"{_public_base_url()}/t/{link.slug}"


def create_link(affiliate: User, product: Product) -> TrackingLink:
    if product.status != Product.STATUS_APPROVED:
        raise ProductNotEligible("Product not found or not approved")

    existing = TrackingLink.objects.filter(affiliate=affiliate, product=product).first()
    if existing:
        return existing

    destination_url = destination_url_for(product)
    for _ in range(MAX_SLUG_ATTEMPTS):
        slug = generate_unique_slug()
        try:
            with transaction.atomic():
                link = TrackingLink.objects.create(
                    affiliate=affiliate,
                    product=product,
                    slug=slug,
                    destination_url=destination_url,
                )
            logger.info("Issued tracking link %s for affiliate %s", slug, affiliate.pk)
            return link
        except IntegrityError:
            # Either a slug collision or a concurrent request created the pair.
            existing = TrackingLink.objects.filter(affiliate=affiliate, product=product).first()
            if existing:
                return existing
            continue
    raise RuntimeError("Failed to generate unique slug")


def get_link(slug: str) -> TrackingLink:
    try:
        return TrackingLink.objects.select_related("affiliate", "product").get(slug=slug)
    except TrackingLink.DoesNotExist:
        raise LinkNotFound() from None


def resolve(slug: str) -> str:
    return get_link(slug).destination_url


def record_click(slug: str, client_meta: ClientMeta) -> ClickRecord:
    """
    Append a click for ``slug`` and return it; its ``click_id`` becomes the
    attribution cookie value. Identical concurrent clicks each get a row.
    """
    link = get_link(slug)
    return ClickRecord.objects.create(
        link=link,
        ip_address=client_meta.ip_address or None,
        user_agent=client_meta.user_agent,
        referrer_url=client_meta.referrer,
        is_bot=is_bot_user_agent(client_meta.user_agent),
    )


def find_click(click_id) -> ClickRecord | None:
    """Look up the click behind an attribution cookie; malformed ids resolve to None."""
    if not click_id:
        return None
    try:
        parsed = uuid.UUID(str(click_id))
    except ValueError:
        return None
    return ClickRecord.objects.select_related("link__affiliate").filter(click_id=parsed).first()
