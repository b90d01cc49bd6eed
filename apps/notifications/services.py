"""
Outbound user emails.

Each send also stores an in-app ``Notification`` so the dashboard can list
what the user was told. Send failures propagate to the caller.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.core.mail import send_mail

from .models import Notification

logger = logging.getLogger(__name__)

SIGNATURE = "\n\nThe Aceos Team"


def _deliver(user, kind: str, subject: str, body: str, store: bool = True) -> None:
    send_mail(
        subject=subject,
        message=body + SIGNATURE,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[user.email],
        fail_silently=False,
    )
    if store:
        Notification.objects.create(user=user, kind=kind, title=subject, body=body)
    logger.info("Sent %s email to %s", kind, user.email)


def send_commission_earned(commission) -> None:
    user = commission.affiliate
    product_title = commission.product.title if commission.product else "a product"
    body = (
        f"Hi {user.display_name},\n\n"
        f"You earned a ${commission.amount} commission on a sale of {product_title}.\n"
        f"Your pending balance is now ${user.commission_balance}."
    )
    _deliver(user, "commission_earned", "You earned a new commission", body)


def send_payout_processed_email(user, amount: Decimal, transaction_id: str) -> None:
    body = (
        f"Hi {user.display_name},\n\n"
        f"We have sent ${amount} to your PayPal account ({user.paypal_email}).\n"
        f"Transaction ID: {transaction_id}"
    )
    _deliver(user, "payout_processed", "Your commission payment has been processed", body)


def send_password_reset_code_email(user, code: str, ttl_minutes: int) -> None:
    body = (
        f"Hi {user.display_name},\n\n"
        f"Your recovery code is: {code}\n"
        f"It expires in {ttl_minutes} minutes. If you did not ask to reset your password, ignore this email."
    )
    # Codes are secrets; keep them out of the in-app inbox.
    _deliver(user, "password_reset", "Your password recovery code", body, store=False)
