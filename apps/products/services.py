from __future__ import annotations

import logging

from django.utils import timezone

from apps.analytics.services import log_activity
from apps.authentication.models import User

from .models import Product

logger = logging.getLogger(__name__)


def review_product(product: Product, approve: bool, reviewer: User) -> tuple[Product, bool]:
    """
    Move a pending product to approved or rejected.

    The transition happens at most once: the update is conditional on the row
    still being pending, so a repeated or concurrent review is a no-op.
    Returns the fresh product and whether this call changed it.
    """
    new_status = Product.STATUS_APPROVED if approve else Product.STATUS_REJECTED
    changed = bool(
        Product.objects.filter(pk=product.pk, status=Product.STATUS_PENDING).update(
            status=new_status,
            reviewed_by=reviewer,
            reviewed_at=timezone.now(),
            updated_at=timezone.now(),
        )
    )
    product.refresh_from_db()

    if changed:
        log_activity(
            action=f"product_{new_status}",
            user=reviewer,
            entity_type="product",
            entity_id=str(product.pk),
            metadata={"title": product.title},
        )
    else:
        logger.info("Product %s already reviewed as %s; ignoring", product.pk, product.status)
    return product, changed
