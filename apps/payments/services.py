"""
Order creation and capture.

Every path that completes a sale, the gateway capture and the legacy
direct-record endpoint alike, ends in ``complete_payment``, which flips the
payment to ``completed`` at most once and posts the commission in the same
transaction.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.affiliates.models import ClickRecord
from apps.authentication.models import User
from apps.commissions.calculator import accrue, split_for_sale
from apps.commissions.models import Commission
from apps.products.models import Product
from core.exceptions import InvalidInput, OrderNotFound, ProductNotEligible

from .gateway import GatewayError, get_gateway
from .models import Payment, PaymentLog

logger = logging.getLogger(__name__)

LEGACY_GATEWAY = "legacy"


@dataclass
class CaptureResult:
    payment: Payment
    commission: Commission | None = None
    already_processed: bool = False

    @property
    def success(self) -> bool:
        return self.payment.status == Payment.STATUS_COMPLETED


def _click_affiliate(click: ClickRecord | None, product_id) -> User | None:
    # A click only attributes purchases of the product its link points at.
    if click is None or click.link.product_id != product_id:
        return None
    return click.link.affiliate


def _existing_result(payment: Payment) -> CaptureResult:
    commission = Commission.objects.filter(payment=payment).first()
    return CaptureResult(payment=payment, commission=commission, already_processed=True)


def _log_payload(provider: str, event: str, reference: str, payload: dict) -> None:
    PaymentLog.objects.create(provider=provider, event=event, reference=reference, raw_payload=payload)


def create_order(
    product: Product,
    affiliate: User | None = None,
    click: ClickRecord | None = None,
    buyer: User | None = None,
    gateway=None,
) -> tuple[Payment, dict]:
    """
    Open a gateway order for ``product`` and persist it as a pending payment.

    The split in the returned payload is indicative only; the authoritative
    split is computed from the captured amount.
    """
    if product.status != Product.STATUS_APPROVED:
        raise ProductNotEligible("Product is not available for purchase.")

    gateway = gateway or get_gateway()
    affiliate = affiliate or _click_affiliate(click, product.pk)
    currency = settings.PAYOUT_CURRENCY
    reference = uuid.uuid4().hex

    order = gateway.create_order(
        amount=product.price,
        currency=currency,
        reference=reference,
        description=product.title,
    )
    payment = Payment.objects.create(
        order_id=order.order_id,
        kind=Payment.KIND_SALE,
        gateway=gateway.name,
        affiliate=affiliate,
        buyer=buyer,
        product=product,
        click=click,
        currency=currency,
        requested_amount=product.price,
        status=Payment.STATUS_PENDING,
    )
    _log_payload(gateway.name, "order.created", order.order_id, order.raw)

    split = split_for_sale(product.price, attributed=affiliate is not None)
    client_payload = {
        "orderId": order.order_id,
        "status": order.status,
        "approveUrl": order.approve_url,
        "amount": str(split.amount),
        "currency": currency,
        "split": split.as_dict(),
    }
    return payment, client_payload


def complete_payment(
    payment_id,
    amount,
    *,
    payer_id: str | None = None,
    gateway_payment_id: str | None = None,
    affiliate: User | None = None,
    click: ClickRecord | None = None,
) -> CaptureResult:
    """
    Mark a payment completed with the captured ``amount`` and accrue commission.

    Runs as one transaction holding the payment row lock; the status update is
    conditional on the row not being completed yet, so concurrent or replayed
    captures of the same order credit exactly once.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise InvalidInput("Captured amount must be positive.")

    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        if payment.status == Payment.STATUS_COMPLETED:
            logger.info("Order %s already captured; returning existing result", payment.order_id)
            return _existing_result(payment)

        click = click or payment.click
        affiliate = affiliate or payment.affiliate or _click_affiliate(click, payment.product_id)
        split = split_for_sale(amount, attributed=affiliate is not None)
        now = timezone.now()

        updated = (
            Payment.objects.filter(pk=payment.pk)
            .exclude(status=Payment.STATUS_COMPLETED)
            .update(
                status=Payment.STATUS_COMPLETED,
                amount=split.amount,
                affiliate=affiliate,
                click=click,
                commission_amount=split.commission,
                platform_fee=split.platform_fee,
                merchant_amount=split.merchant_amount,
                payer_id=payer_id or payment.payer_id,
                gateway_payment_id=gateway_payment_id or payment.gateway_payment_id,
                failure_reason=None,
                completed_at=now,
                updated_at=now,
            )
        )
        if not updated:
            return _existing_result(Payment.objects.get(pk=payment.pk))

        payment.refresh_from_db()
        commission = accrue(payment, split)

    logger.info(
        "Captured order %s for %s (commission %s, fee %s)",
        payment.order_id,
        split.amount,
        split.commission,
        split.platform_fee,
    )
    return CaptureResult(payment=payment, commission=commission)


def capture_order(
    order_id: str,
    affiliate: User | None = None,
    click: ClickRecord | None = None,
    gateway=None,
) -> CaptureResult:
    payment = Payment.objects.filter(order_id=order_id).first()
    if payment is None or payment.kind != Payment.KIND_SALE:
        raise OrderNotFound()

    if payment.status == Payment.STATUS_COMPLETED:
        logger.info("Duplicate capture for order %s ignored", order_id)
        return _existing_result(payment)

    gateway = gateway or get_gateway()
    try:
        capture = gateway.capture_order(order_id, amount_hint=payment.requested_amount)
    except GatewayError as exc:
        # Never downgrade a payment another request has already completed.
        Payment.objects.filter(pk=payment.pk).exclude(status=Payment.STATUS_COMPLETED).update(
            status=Payment.STATUS_FAILED,
            failure_reason=exc.message,
            updated_at=timezone.now(),
        )
        logger.warning("Capture failed for order %s: %s", order_id, exc.message)
        raise

    _log_payload(gateway.name, "order.captured", order_id, capture.raw)
    return complete_payment(
        payment.pk,
        capture.amount,
        payer_id=capture.payer_id,
        gateway_payment_id=capture.capture_id,
        affiliate=affiliate,
        click=click,
    )


def record_legacy_capture(
    order_id: str,
    payer_id: str,
    payment_id: str,
    amount,
    product: Product,
    buyer: User | None = None,
    affiliate: User | None = None,
    click: ClickRecord | None = None,
) -> CaptureResult:
    """
    Record a payment the client already captured with the processor.

    Used by demo flows and alternate gateways. The client-reported amount is
    never trusted beyond the product's list price, and orders opened through a
    gateway can only be completed by ``capture_order``. Shares the order-id
    uniqueness and ``complete_payment`` with the standard capture, so replaying
    either path for the same order credits once.
    """
    if not order_id or not payer_id or not payment_id:
        raise InvalidInput("Missing payment details.")
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("Invalid amount.") from None
    if amount <= 0:
        raise InvalidInput("Amount must be positive.")
    if product.status != Product.STATUS_APPROVED:
        raise ProductNotEligible("Product is not available for purchase.")
    if amount != product.price:
        raise InvalidInput("Amount does not match the product price.")

    payment = Payment.objects.filter(order_id=order_id).first()
    if payment is None:
        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    order_id=order_id,
                    kind=Payment.KIND_SALE,
                    gateway=LEGACY_GATEWAY,
                    affiliate=affiliate,
                    buyer=buyer,
                    product=product,
                    click=click,
                    currency=settings.PAYOUT_CURRENCY,
                    requested_amount=amount,
                    payer_id=payer_id,
                    gateway_payment_id=payment_id,
                    status=Payment.STATUS_PENDING,
                )
        except IntegrityError:
            payment = Payment.objects.get(order_id=order_id)

    if payment.kind != Payment.KIND_SALE or (payment.product_id and payment.product_id != product.pk):
        raise OrderNotFound("Order does not match this product.")

    if payment.status == Payment.STATUS_COMPLETED:
        logger.info("Duplicate legacy capture for order %s ignored", order_id)
        return _existing_result(payment)
    if payment.gateway != LEGACY_GATEWAY:
        logger.warning("Legacy capture refused for %s order %s", payment.gateway, order_id)
        raise OrderNotFound()

    _log_payload(
        LEGACY_GATEWAY,
        "order.recorded",
        order_id,
        {"orderID": order_id, "payerID": payer_id, "paymentID": payment_id, "amount": str(amount)},
    )
    return complete_payment(
        payment.pk,
        amount,
        payer_id=payer_id,
        gateway_payment_id=payment_id,
        affiliate=affiliate,
        click=click,
    )
