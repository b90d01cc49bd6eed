from decimal import Decimal

import pytest
from django.core import mail
from django.db import DatabaseError
from django.db.models import Sum

from apps.commissions.models import Commission
from apps.payments.models import Payment, PaymentLog
from apps.payments.services import capture_order, complete_payment, create_order, record_legacy_capture
from apps.products.models import Product
from core.exceptions import GatewayError, InvalidInput, OrderNotFound, ProductNotEligible

from .conftest import FakeGateway

pytestmark = pytest.mark.django_db


def _assert_ledger_matches_balance(user):
    user.refresh_from_db()
    pending = Commission.objects.filter(affiliate=user, status=Commission.STATUS_PENDING).aggregate(
        total=Sum("amount")
    )["total"] or Decimal("0.00")
    assert pending == user.commission_balance


def test_attributed_hundred_dollar_sale(affiliate, product, click, gateway):
    payment, payload = create_order(product, click=click, gateway=gateway)
    result = capture_order(payment.order_id, gateway=gateway)

    assert result.success
    assert not result.already_processed
    assert result.payment.status == Payment.STATUS_COMPLETED
    assert result.payment.affiliate == affiliate
    assert result.payment.commission_amount == Decimal("15.00")
    assert result.payment.platform_fee == Decimal("5.00")
    assert result.payment.merchant_amount == Decimal("80.00")
    assert result.commission.amount == Decimal("15.00")
    assert result.commission.status == Commission.STATUS_PENDING

    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("15.00")
    _assert_ledger_matches_balance(affiliate)


def test_create_order_payload(product, gateway):
    payment, payload = create_order(product, gateway=gateway)

    assert payment.status == Payment.STATUS_PENDING
    assert payment.requested_amount == Decimal("100.00")
    assert payload["orderId"] == payment.order_id
    assert payload["approveUrl"] == f"https://pay.test/{payment.order_id}"
    assert payload["split"]["commission"] == "0.00"
    assert PaymentLog.objects.filter(reference=payment.order_id, event="order.created").exists()


def test_create_order_requires_approved_product(make_product, gateway):
    pending = make_product(status=Product.STATUS_PENDING)

    with pytest.raises(ProductNotEligible):
        create_order(pending, gateway=gateway)
    assert not Payment.objects.exists()


def test_duplicate_capture_credits_once(affiliate, product, gateway):
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    first = capture_order(payment.order_id, gateway=gateway)
    second = capture_order(payment.order_id, gateway=gateway)

    assert second.already_processed
    assert second.commission.pk == first.commission.pk
    assert gateway.capture_calls == 1
    assert Commission.objects.count() == 1
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("15.00")


def test_complete_payment_twice_is_a_no_op(affiliate, product, gateway):
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    complete_payment(payment.pk, Decimal("100.00"))
    replay = complete_payment(payment.pk, Decimal("100.00"))

    assert replay.already_processed
    assert Commission.objects.count() == 1


def test_unattributed_sale_creates_no_commission(product, gateway):
    payment, _ = create_order(product, gateway=gateway)
    result = capture_order(payment.order_id, gateway=gateway)

    assert result.success
    assert result.commission is None
    assert result.payment.commission_amount == Decimal("0.00")
    assert result.payment.merchant_amount == Decimal("95.00")
    assert not Commission.objects.exists()


def test_captured_amount_drives_the_split(affiliate, product):
    gateway = FakeGateway(captured_amount="40.00")
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    result = capture_order(payment.order_id, gateway=gateway)

    assert result.payment.amount == Decimal("40.00")
    assert result.commission.amount == Decimal("6.00")


def test_explicit_affiliate_wins_over_click(make_user, product, click, gateway):
    explicit = make_user()
    payment, _ = create_order(product, click=click, gateway=gateway)

    result = capture_order(payment.order_id, affiliate=explicit, gateway=gateway)

    assert result.commission.affiliate == explicit


def test_click_for_another_product_does_not_attribute(make_product, click, gateway):
    other_product = make_product(title="Other")
    payment, _ = create_order(other_product, click=click, gateway=gateway)

    result = capture_order(payment.order_id, gateway=gateway)

    assert result.commission is None


def test_gateway_failure_marks_failed_and_can_be_retried(affiliate, product):
    failing = FakeGateway(fail_with="Payment provider timed out.")
    payment, _ = create_order(product, affiliate=affiliate, gateway=failing)

    with pytest.raises(GatewayError):
        capture_order(payment.order_id, gateway=failing)

    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_FAILED
    assert payment.failure_reason == "Payment provider timed out."
    assert not Commission.objects.exists()

    failing.fail_with = None
    result = capture_order(payment.order_id, gateway=failing)

    assert result.success
    assert result.payment.failure_reason is None
    assert Commission.objects.count() == 1


def test_unknown_order_raises(gateway):
    with pytest.raises(OrderNotFound):
        capture_order("NOPE", gateway=gateway)


def test_legacy_capture_refuses_gateway_order(affiliate, product, gateway):
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    with pytest.raises(OrderNotFound):
        record_legacy_capture(payment.order_id, "PAYER", "CAP-1", "100.00", product)

    payment.refresh_from_db()
    assert payment.status == Payment.STATUS_PENDING
    assert not Commission.objects.exists()
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("0.00")


def test_legacy_capture_rejects_inflated_amount(affiliate, product, gateway):
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    with pytest.raises(InvalidInput):
        record_legacy_capture(payment.order_id, "PAYER", "CAP-1", "100000.00", product, affiliate=affiliate)
    with pytest.raises(InvalidInput):
        record_legacy_capture("MADE-UP-1", "PAYER", "CAP-2", "5000.00", product, affiliate=affiliate)

    assert not Payment.objects.filter(order_id="MADE-UP-1").exists()
    assert not Commission.objects.exists()
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("0.00")


def test_legacy_capture_requires_approved_product(affiliate, make_product):
    pending = make_product(status=Product.STATUS_PENDING)

    with pytest.raises(ProductNotEligible):
        record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "100.00", pending, affiliate=affiliate)
    assert not Payment.objects.exists()


def test_standard_then_legacy_capture_credits_once(affiliate, product, gateway):
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    standard = capture_order(payment.order_id, gateway=gateway)
    legacy = record_legacy_capture(payment.order_id, "PAYER", "CAP-1", "100.00", product)

    assert not standard.already_processed
    assert legacy.already_processed
    assert Commission.objects.count() == 1
    _assert_ledger_matches_balance(affiliate)


def test_legacy_then_standard_capture_credits_once(affiliate, product, gateway):
    legacy = record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "100.00", product, affiliate=affiliate)
    standard = capture_order("ORDER-1", gateway=gateway)

    assert not legacy.already_processed
    assert standard.already_processed
    assert gateway.capture_calls == 0
    assert Commission.objects.count() == 1
    _assert_ledger_matches_balance(affiliate)


def test_legacy_capture_creates_payment(affiliate, product, make_user):
    buyer = make_user()

    result = record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "100.00", product, buyer=buyer, affiliate=affiliate)
    replay = record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "100.00", product, buyer=buyer, affiliate=affiliate)

    assert result.payment.buyer == buyer
    assert result.payment.gateway == "legacy"
    assert replay.already_processed
    assert Payment.objects.count() == 1
    assert Commission.objects.count() == 1


def test_legacy_capture_rejects_bad_input(product):
    with pytest.raises(InvalidInput):
        record_legacy_capture("ORDER-1", "", "CAP-1", "100.00", product)
    with pytest.raises(InvalidInput):
        record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "-5", product)
    assert not Payment.objects.exists()


def test_legacy_capture_product_mismatch(product, make_product):
    record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "100.00", product)

    with pytest.raises(OrderNotFound):
        record_legacy_capture("ORDER-1", "PAYER", "CAP-1", "100.00", make_product(title="Other"))


def test_commission_email_sent_after_commit(affiliate, product, gateway, django_capture_on_commit_callbacks):
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    with django_capture_on_commit_callbacks(execute=True):
        capture_order(payment.order_id, gateway=gateway)

    assert len(mail.outbox) == 1
    assert "$15.00" in mail.outbox[0].body
    assert affiliate.notifications.filter(kind="commission_earned").count() == 1


def test_many_sales_keep_ledger_equal_to_balance(affiliate, make_product, gateway):
    for price in ("10.00", "19.99", "0.07", "250.00"):
        payment, _ = create_order(make_product(price=price), affiliate=affiliate, gateway=gateway)
        capture_order(payment.order_id, gateway=gateway)

    _assert_ledger_matches_balance(affiliate)


def test_broker_outage_does_not_fail_capture(
    affiliate, product, gateway, monkeypatch, django_capture_on_commit_callbacks
):
    class _DownBroker:
        @staticmethod
        def delay(*args, **kwargs):
            raise ConnectionError("broker unavailable")

    monkeypatch.setattr("apps.commissions.calculator.send_commission_earned_email", _DownBroker)
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        result = capture_order(payment.order_id, gateway=gateway)

    assert len(callbacks) == 1
    assert result.success
    assert Commission.objects.filter(payment=payment).count() == 1
    assert mail.outbox == []


def test_balance_update_failure_rolls_back_capture(affiliate, product, gateway, monkeypatch):
    class _FailingQuerySet:
        def update(self, **kwargs):
            raise DatabaseError("balance update failed")

    class _FailingManager:
        def filter(self, **kwargs):
            return _FailingQuerySet()

    class _FailingUser:
        objects = _FailingManager()

    monkeypatch.setattr("apps.commissions.calculator.User", _FailingUser)
    payment, _ = create_order(product, affiliate=affiliate, gateway=gateway)

    with pytest.raises(DatabaseError):
        capture_order(payment.order_id, gateway=gateway)

    payment.refresh_from_db()
    affiliate.refresh_from_db()
    assert payment.status != Payment.STATUS_COMPLETED
    assert payment.commission_amount == Decimal("0.00")
    assert not Commission.objects.exists()
    assert affiliate.commission_balance == Decimal("0.00")
