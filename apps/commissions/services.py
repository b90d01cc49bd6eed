from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from apps.analytics.services import log_activity
from apps.authentication.models import User
from apps.notifications.services import send_payout_processed_email
from apps.payments.models import Payment
from core.exceptions import InvalidInput

from .models import Commission, Payout

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

PAYOUT_PROCESSED = "processed"
PAYOUT_SKIPPED = "skipped"
PAYOUT_FAILED = "failed"


@dataclass
class PayoutResult:
    user_id: str
    email: str
    amount: Decimal
    status: str
    transaction_id: str | None = None
    reason: str | None = None

    def as_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "userId": self.user_id,
            "email": self.email,
            "amount": str(self.amount),
            "status": self.status,
        }
        if self.transaction_id:
            data["transactionId"] = self.transaction_id
        if self.reason:
            data["reason"] = self.reason
        return data


def generate_transaction_id() -> str:
    return f"PO-{uuid.uuid4().hex[:20].upper()}"


def pending_total(user_id) -> Decimal:
    total = Commission.objects.filter(
        affiliate_id=user_id,
        status=Commission.STATUS_PENDING,
    ).aggregate(total=Sum("amount"))["total"]
    return total or ZERO


def settlement_candidates():
    """Affiliates holding a cached balance or unpaid commission rows."""
    return (
        User.objects.filter(role=User.ROLE_AFFILIATE)
        .filter(Q(commission_balance__gt=0) | Q(commissions__status=Commission.STATUS_PENDING))
        .distinct()
        .order_by("-commission_balance")
    )


def settle_affiliate(user_id, threshold: Decimal | None = None) -> PayoutResult:
    """
    Pay out one affiliate's pending commissions in a single transaction.

    The pending commission rows are the source of truth for the amount; a
    cached balance that disagrees is corrected. Any exception rolls back this
    affiliate's settlement and is reported as a ``failed`` result.
    """
    threshold = settings.MINIMUM_PAYOUT_AMOUNT if threshold is None else Decimal(threshold)
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        logger.warning("Settlement skipped for missing affiliate %s", user_id)
        return PayoutResult(
            user_id=str(user_id), email="", amount=ZERO, status=PAYOUT_FAILED, reason="Affiliate not found"
        )
    result = PayoutResult(user_id=str(user.pk), email=user.email, amount=user.commission_balance, status=PAYOUT_SKIPPED)

    if not user.has_payout_destination:
        result.reason = "No payout destination configured"
        return result

    try:
        with transaction.atomic():
            user = User.objects.select_for_update().get(pk=user_id)
            pending = list(
                Commission.objects.select_for_update()
                .filter(affiliate=user, status=Commission.STATUS_PENDING)
                .order_by("created_at")
            )
            amount = sum((c.amount for c in pending), ZERO)
            result.amount = amount

            if amount != user.commission_balance:
                logger.warning(
                    "Balance %s for affiliate %s disagrees with pending commissions %s; using ledger",
                    user.commission_balance,
                    user.pk,
                    amount,
                )
                User.objects.filter(pk=user.pk).update(commission_balance=amount)

            if amount <= 0:
                result.reason = "Nothing to settle"
                return result
            if amount < threshold:
                result.reason = f"Amount too small (minimum ${threshold})"
                return result

            now = timezone.now()
            transaction_id = generate_transaction_id()
            payout = Payout.objects.create(
                affiliate=user,
                transaction_id=transaction_id,
                destination=user.paypal_email,
                total_amount=amount,
                commission_count=len(pending),
            )
            Commission.objects.filter(pk__in=[c.pk for c in pending]).update(
                status=Commission.STATUS_PAID,
                paid_at=now,
                payout=payout,
            )
            User.objects.filter(pk=user.pk).update(commission_balance=ZERO)
            Payment.objects.create(
                order_id=transaction_id,
                kind=Payment.KIND_PAYOUT,
                gateway="system",
                affiliate=user,
                currency=settings.PAYOUT_CURRENCY,
                requested_amount=amount,
                amount=amount,
                status=Payment.STATUS_COMPLETED,
                payer_id="SYSTEM",
                gateway_payment_id=transaction_id,
                completed_at=now,
            )
            log_activity(
                action=f"Payment processed: ${amount} to {user.display_name} ({user.email})",
                user=user,
                entity_type="payout",
                entity_id=str(payout.pk),
                metadata={"transaction_id": transaction_id, "amount": str(amount)},
            )
            send_payout_processed_email(user, amount, transaction_id)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Settlement failed for affiliate %s", user_id)
        result.status = PAYOUT_FAILED
        result.reason = str(exc)
        return result

    result.status = PAYOUT_PROCESSED
    result.transaction_id = transaction_id
    result.reason = None
    logger.info("Paid %s to affiliate %s (%s)", amount, user.pk, transaction_id)
    return result


def settle_pending(threshold: Decimal | None = None) -> list[PayoutResult]:
    """
    Settle every affiliate independently; one failure never stops the run.

    A second run that overlaps an earlier one finds those balances already at
    zero and reports them as skipped.
    """
    user_ids = list(settlement_candidates().values_list("pk", flat=True))
    results = [settle_affiliate(user_id, threshold) for user_id in user_ids]

    processed = [r for r in results if r.status == PAYOUT_PROCESSED]
    failed = [r for r in results if r.status == PAYOUT_FAILED]
    logger.info(
        "Settlement run: %d processed, %d skipped, %d failed",
        len(processed),
        len(results) - len(processed) - len(failed),
        len(failed),
    )
    return results


def reconcile_balances() -> int:
    """Reset cached balances that disagree with pending commission rows. Returns how many were fixed."""
    fixed = 0
    for user_id in settlement_candidates().values_list("pk", flat=True):
        with transaction.atomic():
            user = User.objects.select_for_update().get(pk=user_id)
            total = pending_total(user.pk)
            if total != user.commission_balance:
                logger.warning(
                    "Reconciling balance for affiliate %s: %s -> %s",
                    user.pk,
                    user.commission_balance,
                    total,
                )
                User.objects.filter(pk=user.pk).update(commission_balance=total)
                fixed += 1
    return fixed


def request_payout(user: User, amount, ip_address: str | None = None) -> dict[str, str]:
    """
    Record an affiliate's request for an early payout for admin review.

    Nothing moves: the request is an activity entry, and the commissions stay
    pending until a settlement run pays them.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise InvalidInput("Valid amount required")
    available = pending_total(user.pk)
    if amount > available:
        raise InvalidInput("Insufficient balance for payout request")

    entry = log_activity(
        action=f"Payout request: ${amount} by {user.display_name} ({user.email})",
        user=user,
        entity_type="payout_request",
        entity_id=str(user.pk),
        ip_address=ip_address,
        metadata={"amount": str(amount), "available": str(available)},
    )
    logger.info("Affiliate %s requested payout of %s (available %s)", user.pk, amount, available)
    return {
        "message": "Payout request submitted for review",
        "requestId": str(entry.pk),
        "amount": str(amount),
        "available": str(available),
    }
