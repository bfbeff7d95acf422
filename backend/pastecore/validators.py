"""
Input checks run by the client before anything is encrypted.

They look only at sizes, ranges and the password shape, never at what the
content says.
"""

import re

from pastecore.errors import ValidationError

MAX_CONTENT_SIZE = 1024 * 1024
MIN_EXPIRATION_SECONDS = 60
MAX_EXPIRATION_SECONDS = 7 * 24 * 60 * 60
MIN_VIEW_COUNT = 1
MAX_VIEW_COUNT = 100
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

PIN_PATTERN = re.compile(r"[0-9]{4,12}")
COMMON_PASSWORDS = frozenset({"password", "12345678", "qwerty", "admin", "letmein"})


def validate_content(text: str) -> None:
    if not text:
        raise ValidationError("content_empty", "Content cannot be empty.")
    if len(text.encode("utf-8")) > MAX_CONTENT_SIZE:
        raise ValidationError("content_too_large", f"Content too large (max {MAX_CONTENT_SIZE // 1024}KB).")


def validate_expiration(expire_in_seconds: int) -> None:
    if not MIN_EXPIRATION_SECONDS <= expire_in_seconds <= MAX_EXPIRATION_SECONDS:
        raise ValidationError("expiry_invalid", "Expiration must be between 1 minute and 7 days.")


def validate_view_count(views: int) -> None:
    if not MIN_VIEW_COUNT <= views <= MAX_VIEW_COUNT:
        raise ValidationError("views_invalid", f"View count must be between 1 and {MAX_VIEW_COUNT}.")


def validate_password(password: str) -> None:
    """
    Accept a 4-12 digit PIN or a password of 8-128 characters.

    A handful of well-known passwords are refused outright.
    """
    if not password:
        raise ValidationError("password_required", "A password or PIN is required.")
    if password.lower() in COMMON_PASSWORDS:
        raise ValidationError("password_too_common", "Password is too common. Please choose a stronger password.")
    if PIN_PATTERN.fullmatch(password):
        return
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "password_too_short",
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long or use a 4-12 digit PIN.",
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError("password_too_long", f"Password cannot exceed {MAX_PASSWORD_LENGTH} characters.")


def validate_new_paste(
    text: str,
    password: str,
    expire_in_seconds: int,
    views_allowed: int | None = None,
) -> None:
    """Run every creation check, raising on the first failure."""
    validate_content(text)
    validate_password(password)
    validate_expiration(expire_in_seconds)
    if views_allowed is not None:
        validate_view_count(views_allowed)
