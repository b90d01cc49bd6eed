from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.db.models import F

from apps.authentication.models import User
from apps.notifications.tasks import send_commission_earned_email

from .models import Commission

if TYPE_CHECKING:
    from apps.payments.models import Payment

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionSplit:
    amount: Decimal
    affiliate_rate: Decimal
    fee_rate: Decimal
    commission: Decimal
    platform_fee: Decimal
    merchant_amount: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "amount": str(self.amount),
            "affiliateRate": str(self.affiliate_rate),
            "platformFeeRate": str(self.fee_rate),
            "commission": str(self.commission),
            "platformFee": str(self.platform_fee),
            "merchantAmount": str(self.merchant_amount),
        }


def split_amount(amount, affiliate_rate=None, fee_rate=None) -> CommissionSplit:
    """
    Three-way split of a sale amount.

    Commission and fee are each rounded half-up to the cent exactly once; the
    merchant remainder is whatever is left, so the three parts always sum to
    ``amount``.
    """
    amount = to_money(amount)
    affiliate_rate = Decimal(settings.AFFILIATE_COMMISSION_RATE if affiliate_rate is None else affiliate_rate)
    fee_rate = Decimal(settings.PLATFORM_FEE_RATE if fee_rate is None else fee_rate)

    commission = to_money(amount * affiliate_rate)
    platform_fee = to_money(amount * fee_rate)
    return CommissionSplit(
        amount=amount,
        affiliate_rate=affiliate_rate,
        fee_rate=fee_rate,
        commission=commission,
        platform_fee=platform_fee,
        merchant_amount=amount - commission - platform_fee,
    )


def split_for_sale(amount, attributed: bool) -> CommissionSplit:
    # Unattributed sales pay no affiliate share.
    return split_amount(amount, affiliate_rate=None if attributed else Decimal("0"))


def _queue_commission_email(commission_id: str) -> None:
    # Runs after commit; a broker outage must not surface as a failed capture.
    try:
        send_commission_earned_email.delay(commission_id)
    except Exception:  # noqa: BLE001
        logger.exception("Could not queue commission email for %s", commission_id)


def accrue(payment: Payment, split: CommissionSplit | None = None) -> Commission | None:
    """
    Post a pending commission for a freshly completed sale.

    The commission row and the balance increment commit together or not at
    all. Callers pass the split they already stored on the payment so the
    amounts are computed once.
    """
    if payment.affiliate_id is None:
        return None

    if split is None:
        split = split_for_sale(payment.amount, attributed=True)

    with transaction.atomic():
        commission = Commission.objects.create(
            affiliate_id=payment.affiliate_id,
            payment=payment,
            product_id=payment.product_id,
            gross_sale_amount=split.amount,
            commission_rate=split.affiliate_rate,
            amount=split.commission,
            platform_fee_rate=split.fee_rate,
            platform_fee_amount=split.platform_fee,
            status=Commission.STATUS_PENDING,
            is_recurring=bool(payment.product and payment.product.is_recurring),
        )
        User.objects.filter(pk=payment.affiliate_id).update(
            commission_balance=F("commission_balance") + split.commission
        )

    logger.info(
        "Accrued commission %s for affiliate %s on order %s",
        split.commission,
        payment.affiliate_id,
        payment.order_id,
    )

    commission_id = str(commission.pk)
    transaction.on_commit(lambda: _queue_commission_email(commission_id))
    return commission
