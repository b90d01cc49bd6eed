import uuid
from decimal import Decimal

import pytest
from django.core import mail

from apps.analytics.models import ActivityLog
from apps.commissions.models import Commission, Payout
from apps.commissions.services import (
    PAYOUT_FAILED,
    PAYOUT_PROCESSED,
    PAYOUT_SKIPPED,
    reconcile_balances,
    request_payout,
    settle_affiliate,
    settle_pending,
)
from apps.commissions.tasks import settle_pending_commissions
from apps.payments.models import Payment
from apps.payments.services import capture_order, create_order
from core.exceptions import InvalidInput

pytestmark = pytest.mark.django_db


@pytest.fixture
def sell(make_product, gateway):
    def _sell(affiliate, price="100.00"):
        payment, _ = create_order(make_product(price=price), affiliate=affiliate, gateway=gateway)
        return capture_order(payment.order_id, gateway=gateway)

    return _sell


def _by_user(results):
    return {r.user_id: r for r in results}


def test_settlement_pays_out_pending_commissions(affiliate, sell):
    sell(affiliate)
    sell(affiliate, "20.00")

    [result] = settle_pending()

    assert result.status == PAYOUT_PROCESSED
    assert result.amount == Decimal("18.00")
    assert result.transaction_id.startswith("PO-")

    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("0.00")
    assert not Commission.objects.filter(status=Commission.STATUS_PENDING).exists()

    payout = Payout.objects.get()
    assert payout.transaction_id == result.transaction_id
    assert payout.total_amount == Decimal("18.00")
    assert payout.commission_count == 2
    assert payout.commissions.count() == 2

    record = Payment.objects.get(kind=Payment.KIND_PAYOUT)
    assert record.order_id == result.transaction_id
    assert record.status == Payment.STATUS_COMPLETED
    assert record.payer_id == "SYSTEM"

    assert len(mail.outbox) == 1
    assert result.transaction_id in mail.outbox[0].body


def test_balance_below_threshold_is_skipped(affiliate, sell):
    sell(affiliate, "3.33")  # 0.50 commission

    [result] = settle_pending()

    assert result.status == PAYOUT_SKIPPED
    assert result.reason == "Amount too small (minimum $1.00)"
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("0.50")
    assert not Payout.objects.exists()


def test_exact_threshold_is_paid(affiliate, sell):
    sell(affiliate, "6.67")  # 1.0005 rounds to 1.00

    [result] = settle_pending()

    assert result.status == PAYOUT_PROCESSED
    assert result.amount == Decimal("1.00")


def test_missing_payout_destination_is_skipped(make_user, sell):
    no_paypal = make_user(paypal_email="")
    sell(no_paypal)

    [result] = settle_pending()

    assert result.status == PAYOUT_SKIPPED
    assert result.reason == "No payout destination configured"
    no_paypal.refresh_from_db()
    assert no_paypal.commission_balance == Decimal("15.00")


def test_notification_failure_only_fails_that_affiliate(make_user, sell, monkeypatch):
    good = make_user()
    bad = make_user(email="broken@example.com")
    sell(good)
    sell(bad)

    from apps.commissions import services

    real_send = services.send_payout_processed_email

    def flaky_send(user, amount, transaction_id):
        if user.email == "broken@example.com":
            raise OSError("SMTP down")
        real_send(user, amount, transaction_id)

    monkeypatch.setattr(services, "send_payout_processed_email", flaky_send)

    results = _by_user(settle_pending())

    assert results[str(good.pk)].status == PAYOUT_PROCESSED
    assert results[str(bad.pk)].status == PAYOUT_FAILED
    assert results[str(bad.pk)].reason == "SMTP down"

    bad.refresh_from_db()
    assert bad.commission_balance == Decimal("15.00")
    assert Commission.objects.filter(affiliate=bad, status=Commission.STATUS_PENDING).count() == 1
    assert not Payout.objects.filter(affiliate=bad).exists()
    assert not Payment.objects.filter(kind=Payment.KIND_PAYOUT, affiliate=bad).exists()


def test_missing_affiliate_reports_failed():
    missing = uuid.uuid4()

    result = settle_affiliate(missing)

    assert result.status == PAYOUT_FAILED
    assert result.user_id == str(missing)
    assert result.reason == "Affiliate not found"


def test_activity_log_failure_sends_no_payout_email(affiliate, sell, monkeypatch):
    sell(affiliate)
    mail.outbox.clear()

    from apps.commissions import services

    def broken_log(**kwargs):
        raise RuntimeError("activity log unavailable")

    monkeypatch.setattr(services, "log_activity", broken_log)

    result = settle_affiliate(affiliate.pk)

    assert result.status == PAYOUT_FAILED
    assert mail.outbox == []
    assert not Payout.objects.exists()
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("15.00")


def test_second_run_skips_already_settled(affiliate, sell):
    sell(affiliate)
    settle_pending()

    assert settle_pending() == []
    result = settle_affiliate(affiliate.pk)
    assert result.status == PAYOUT_SKIPPED
    assert result.reason == "Nothing to settle"
    assert Payout.objects.count() == 1


def test_settlement_uses_ledger_when_balance_drifts(affiliate, sell):
    sell(affiliate)
    type(affiliate).objects.filter(pk=affiliate.pk).update(commission_balance=Decimal("99.00"))

    result = settle_affiliate(affiliate.pk)

    assert result.status == PAYOUT_PROCESSED
    assert result.amount == Decimal("15.00")
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("0.00")


def test_reconcile_balances_fixes_drift(affiliate, sell):
    sell(affiliate)
    type(affiliate).objects.filter(pk=affiliate.pk).update(commission_balance=Decimal("1.23"))

    assert reconcile_balances() == 1
    affiliate.refresh_from_db()
    assert affiliate.commission_balance == Decimal("15.00")
    assert reconcile_balances() == 0


def test_custom_threshold(affiliate, sell):
    sell(affiliate)

    [result] = settle_pending(threshold=Decimal("50.00"))

    assert result.status == PAYOUT_SKIPPED


def test_settle_task_returns_serialized_results(affiliate, sell):
    sell(affiliate)

    results = settle_pending_commissions()

    assert results[0]["status"] == PAYOUT_PROCESSED
    assert results[0]["userId"] == str(affiliate.pk)


def test_settlement_api_requires_admin(api_client, affiliate):
    api_client.force_authenticate(affiliate)

    assert api_client.post("/api/commissions/settlements/", {}, format="json").status_code == 403


def test_settlement_api(api_client, admin_user, affiliate, sell):
    sell(affiliate)
    api_client.force_authenticate(admin_user)

    listing = api_client.get("/api/commissions/settlements/")
    assert listing.status_code == 200

    resp = api_client.post("/api/commissions/settlements/", {}, format="json")

    assert resp.status_code == 200
    assert resp.data["success"] is True
    assert resp.data["results"][0]["status"] == PAYOUT_PROCESSED


def test_request_payout_records_activity(affiliate, sell):
    sell(affiliate)

    body = request_payout(affiliate, "10.00")

    assert body["amount"] == "10.00"
    assert body["available"] == "15.00"
    entry = ActivityLog.objects.get(entity_type="payout_request")
    assert entry.user == affiliate
    assert entry.metadata["amount"] == "10.00"
    assert Commission.objects.filter(affiliate=affiliate, status=Commission.STATUS_PENDING).count() == 1


def test_request_payout_rejects_more_than_pending(affiliate, sell):
    sell(affiliate)

    with pytest.raises(InvalidInput):
        request_payout(affiliate, "15.01")
    with pytest.raises(InvalidInput):
        request_payout(affiliate, "0")
    assert not ActivityLog.objects.filter(entity_type="payout_request").exists()


def test_payout_request_api(api_client, affiliate, admin_user, sell):
    sell(affiliate)

    assert api_client.post("/api/commissions/payout-requests/", {"amount": "5.00"}, format="json").status_code == 401

    api_client.force_authenticate(admin_user)
    assert api_client.post("/api/commissions/payout-requests/", {"amount": "5.00"}, format="json").status_code == 403

    api_client.force_authenticate(affiliate)
    accepted = api_client.post("/api/commissions/payout-requests/", {"amount": "15.00"}, format="json")
    too_much = api_client.post("/api/commissions/payout-requests/", {"amount": "50.00"}, format="json")

    assert accepted.status_code == 201
    assert accepted.data["message"] == "Payout request submitted for review"
    assert too_much.status_code == 400
    assert too_much.data["detail"] == "Insufficient balance for payout request"
