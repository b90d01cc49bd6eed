from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from apps.authentication.models import PasswordResetCode, User
from apps.authentication.services import (
    InvalidCode,
    issue_reset_code,
    purge_expired_codes,
    reset_password,
    verify_reset_code,
)
from core.exceptions import InvalidInput, NotFound

pytestmark = pytest.mark.django_db

NEW_PASSWORD = "An0ther-Str0ng-pass"


def test_register_always_creates_affiliate(api_client):
    resp = api_client.post(
        "/api/auth/register/",
        {"email": "New@Example.com", "username": "newbie", "password": "S3cure-pass-123", "role": "admin"},
        format="json",
    )

    assert resp.status_code == 201
    user = User.objects.get(email="new@example.com")
    assert user.role == User.ROLE_AFFILIATE


def test_register_rejects_duplicate_email(api_client, affiliate):
    resp = api_client.post(
        "/api/auth/register/",
        {"email": affiliate.email, "username": "dupe", "password": "S3cure-pass-123"},
        format="json",
    )

    assert resp.status_code == 400
    assert resp.data["email"] == ["User already exists."]


def test_login_returns_tokens_and_role(api_client, affiliate):
    resp = api_client.post(
        "/api/auth/login/", {"email": affiliate.email, "password": "S3cure-pass-123"}, format="json"
    )

    assert resp.status_code == 200
    assert resp.data["role"] == User.ROLE_AFFILIATE
    assert resp.data["access"]


def test_reset_code_is_emailed_with_ttl(affiliate):
    reset_code = issue_reset_code(affiliate.email)

    assert len(reset_code.code) == 6
    assert reset_code.expires_at > timezone.now() + timedelta(minutes=14)
    assert reset_code.code in mail.outbox[0].body
    assert not affiliate.notifications.exists()


def test_unknown_email_is_rejected():
    with pytest.raises(NotFound):
        issue_reset_code("ghost@example.com")


def test_three_failed_attempts_then_locked(affiliate):
    reset_code = issue_reset_code(affiliate.email)
    wrong = "000000" if reset_code.code != "000000" else "111111"

    left = []
    for _ in range(3):
        with pytest.raises(InvalidCode) as exc_info:
            verify_reset_code(affiliate.email, wrong)
        left.append(exc_info.value.attempts_left)
    assert left == [2, 1, 0]

    with pytest.raises(InvalidInput, match="Too many failed attempts"):
        verify_reset_code(affiliate.email, reset_code.code)
    assert not PasswordResetCode.objects.exists()


def test_expired_code_is_rejected(affiliate):
    reset_code = issue_reset_code(affiliate.email)
    PasswordResetCode.objects.filter(pk=reset_code.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

    with pytest.raises(InvalidInput, match="expired"):
        verify_reset_code(affiliate.email, reset_code.code)


def test_full_reset_flow(affiliate):
    reset_code = issue_reset_code(affiliate.email)

    with pytest.raises(InvalidInput):
        reset_password(affiliate.email, reset_code.code, NEW_PASSWORD)

    verify_reset_code(affiliate.email, reset_code.code)
    reset_password(affiliate.email, reset_code.code, NEW_PASSWORD)

    affiliate.refresh_from_db()
    assert affiliate.check_password(NEW_PASSWORD)
    assert not PasswordResetCode.objects.exists()


def test_verify_endpoint_reports_attempts_left(api_client, affiliate):
    reset_code = issue_reset_code(affiliate.email)
    wrong = "000000" if reset_code.code != "000000" else "111111"

    resp = api_client.post("/api/auth/verify-code/", {"email": affiliate.email, "code": wrong}, format="json")

    assert resp.status_code == 400
    assert resp.data == {"success": False, "message": "Invalid code. Please try again.", "attemptsLeft": 2}


def test_purge_expired_codes(affiliate, make_user):
    live = issue_reset_code(affiliate.email)
    stale = issue_reset_code(make_user().email)
    PasswordResetCode.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

    assert purge_expired_codes() == 1
    assert list(PasswordResetCode.objects.values_list("pk", flat=True)) == [live.pk]
