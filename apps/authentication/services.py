from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from apps.notifications.services import send_password_reset_code_email
from core.exceptions import InvalidInput, NotFound

from .models import PasswordResetCode, User

logger = logging.getLogger(__name__)


class InvalidCode(InvalidInput):
    code = "invalid_code"

    def __init__(self, attempts_left: int) -> None:
        self.attempts_left = attempts_left
        super().__init__("Invalid code. Please try again.")


def _generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def issue_reset_code(email: str) -> PasswordResetCode:
    email = (email or "").strip().lower()
    user = User.objects.filter(email=email, is_active=True).first()
    if user is None:
        raise NotFound("Email not found")

    expires_at = timezone.now() + timedelta(minutes=settings.PASSWORD_RESET_CODE_TTL_MINUTES)
    reset_code, _ = PasswordResetCode.objects.update_or_create(
        email=email,
        defaults={
            "code": _generate_code(),
            "expires_at": expires_at,
            "attempts": 0,
            "verified_at": None,
        },
    )
    send_password_reset_code_email(user, reset_code.code, settings.PASSWORD_RESET_CODE_TTL_MINUTES)
    logger.info("Issued password reset code for %s", email)
    return reset_code


def _get_live_code(email: str) -> PasswordResetCode:
    reset_code = PasswordResetCode.objects.filter(email=email).first()
    if reset_code is None:
        raise InvalidInput("No recovery code found. Please request a new one.")
    if reset_code.is_expired:
        reset_code.delete()
        raise InvalidInput("Recovery code has expired. Please request a new one.")
    return reset_code


def verify_reset_code(email: str, code: str) -> PasswordResetCode:
    """
    Check ``code`` against the stored one, counting failed attempts.

    The attempt counter lives in the database so it holds across processes.
    Failures are raised after the transaction commits so the counter sticks.
    """
    email = (email or "").strip().lower()
    max_attempts = settings.PASSWORD_RESET_MAX_ATTEMPTS
    reset_code = _get_live_code(email)

    failure: InvalidInput | None = None
    with transaction.atomic():
        locked = PasswordResetCode.objects.select_for_update().filter(pk=reset_code.pk).first()
        if locked is None:
            failure = InvalidInput("No recovery code found. Please request a new one.")
        elif locked.attempts >= max_attempts:
            locked.delete()
            failure = InvalidInput("Too many failed attempts. Please request a new code.")
        elif not secrets.compare_digest(locked.code, str(code or "")):
            locked.attempts += 1
            locked.save(update_fields=["attempts"])
            failure = InvalidCode(max(max_attempts - locked.attempts, 0))
        else:
            locked.verified_at = timezone.now()
            locked.save(update_fields=["verified_at"])

    if failure is not None:
        raise failure
    return locked


def reset_password(email: str, code: str, new_password: str) -> User:
    email = (email or "").strip().lower()
    reset_code = _get_live_code(email)
    if reset_code.verified_at is None or reset_code.code != str(code or ""):
        raise InvalidInput("Please verify your recovery code first.")

    user = User.objects.filter(email=email, is_active=True).first()
    if user is None:
        raise NotFound("Email not found")

    try:
        validate_password(new_password, user=user)
    except DjangoValidationError as exc:
        raise InvalidInput(", ".join(exc.messages)) from exc

    with transaction.atomic():
        user.set_password(new_password)
        user.save(update_fields=["password"])
        reset_code.delete()
    logger.info("Password reset for %s", email)
    return user


def purge_expired_codes() -> int:
    deleted, _ = PasswordResetCode.objects.filter(expires_at__lte=timezone.now()).delete()
    return deleted
