"""
Password reset via emailed one-time codes.

Per email the lifeline is ``NoToken -> Issued -> {Verified, Expired,
Exhausted, Superseded}``. Verification does not persist a "verified" flag,
so the final reset step re-checks the code itself and only then retires
the token.

Outcomes a user can cause (wrong code, expired code, too many attempts)
are returned as ``OtpCheck`` values; exceptions are reserved for missing
tokens, rate limiting and email delivery failures.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError

from kita.auth.otp import generate_otp, hash_otp, is_otp_expired, otp_expiry, verify_otp
from kita.auth.password import PasswordStrengthError, hash_password, validate_password_strength
from kita.auth.repository import (
    count_reset_tokens_since,
    create_reset_token,
    find_latest_usable_reset_token,
    get_user_by_email,
    increment_token_attempts,
    invalidate_usable_reset_tokens,
    mark_token_used,
    oldest_reset_token_since,
    release_token_attempt,
    update_user_credential,
)
from kita.config import get_settings
from kita.email.service import get_email_service
from kita.errors import DispatchError, NoActiveTokenError, NotFoundError, RateLimitError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from kita.db.models import PasswordResetToken
    from kita.email.service import EmailService

logger = structlog.get_logger()

GENERIC_REQUEST_MESSAGE = "If an account exists with this email, you will receive a reset code."


class OtpStatus(str, enum.Enum):
    VERIFIED = "verified"
    MISMATCH = "mismatch"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


@dataclass
class OtpCheck:
    """Result of checking a submitted reset code."""

    status: OtpStatus
    attempts_remaining: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == OtpStatus.VERIFIED

    @property
    def message(self) -> str:
        if self.status == OtpStatus.VERIFIED:
            return "Code verified successfully."
        if self.status == OtpStatus.EXPIRED:
            return "Reset code has expired. Please request a new one."
        if self.status == OtpStatus.EXHAUSTED:
            return "Too many failed attempts. Please request a new code."
        remaining = self.attempts_remaining or 0
        return f"Invalid code. {remaining} attempt{'' if remaining == 1 else 's'} remaining."


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


async def _check_request_rate(db: AsyncSession, email: str, now: datetime) -> None:
    """Raise RateLimitError once the hourly request cap is used up."""
    settings = get_settings()
    window = timedelta(minutes=settings.otp_request_window_minutes)
    since = now - window
    recent = await count_reset_tokens_since(db, email, since)
    if recent < settings.otp_requests_per_window:
        return

    oldest = await oldest_reset_token_since(db, email, since)
    retry_after = (oldest + window - now).total_seconds() if oldest else window.total_seconds()
    logger.warning("reset_rate_limited", recent_requests=recent)
    msg = "Too many reset requests. Please try again later."
    raise RateLimitError(msg, retry_after=int(retry_after) + 1)


async def _issue_token(
    db: AsyncSession,
    email: str,
    otp_hash: str,
    now: datetime,
) -> PasswordResetToken:
    """
    Supersede older tokens and insert the new one in a single transaction.

    The partial unique index on usable tokens turns a concurrent issuance
    into an IntegrityError; the loser rolls back and retries once.
    """
    for attempt in range(2):
        try:
            await invalidate_usable_reset_tokens(db, email)
            token = await create_reset_token(db, email, otp_hash, otp_expiry(now), now=now)
            await db.commit()
            return token
        except IntegrityError:
            await db.rollback()
            if attempt:
                raise
            logger.warning("reset_token_conflict_retry")
    msg = "unreachable"
    raise RuntimeError(msg)


async def request_password_reset(
    db: AsyncSession,
    email: str,
    email_service: EmailService | None = None,
    now: datetime | None = None,
) -> None:
    """
    Issue a reset code and email it.

    Unknown emails return silently so callers can answer with the same
    generic message either way. Commits the new token before sending.

    Raises:
        RateLimitError: Hourly request cap reached for this email.
        DispatchError: The email could not be sent (the new code is retired).
    """
    settings = get_settings()
    email = normalize_email(email)
    now = now or datetime.now(timezone.utc)

    user = await get_user_by_email(db, email)
    if user is None:
        logger.info("reset_requested_unknown_email")
        return
    user_name = user.name or "Member"

    await _check_request_rate(db, email, now)

    code = generate_otp()
    token = await _issue_token(db, email, hash_otp(code, email), now)
    logger.info("reset_code_issued", token_id=token.id, expires_at=token.expires_at.isoformat())

    service = email_service or get_email_service()
    sent = await service.send_template(
        to=email,
        template_name="password_reset_code",
        context={"name": user_name, "code": code, "expires_minutes": str(settings.otp_ttl_minutes)},
    )
    if not sent:
        await mark_token_used(db, token)
        await db.commit()
        logger.error("reset_code_dispatch_failed", token_id=token.id)
        msg = "Failed to send reset email. Please try again."
        raise DispatchError(msg)


# ---------------------------------------------------------------------------
# Verify / reset
# ---------------------------------------------------------------------------


async def _check_code(
    db: AsyncSession,
    email: str,
    code: str,
    now: datetime,
) -> tuple[PasswordResetToken, OtpCheck]:
    """
    Shared code check. Writes attempt/used bookkeeping; caller commits.

    An attempt is claimed in the database before the code is compared and
    handed back when the code matches, so only failed submissions count.
    """
    settings = get_settings()
    token = await find_latest_usable_reset_token(db, email)
    if token is None:
        raise NoActiveTokenError

    if is_otp_expired(token.expires_at, now):
        await mark_token_used(db, token)
        logger.info("reset_code_expired", token_id=token.id)
        return token, OtpCheck(OtpStatus.EXPIRED)

    attempts = await increment_token_attempts(db, token, settings.otp_max_attempts)
    if attempts is None:
        if not await mark_token_used(db, token):
            raise NoActiveTokenError
        logger.info("reset_code_exhausted", token_id=token.id)
        return token, OtpCheck(OtpStatus.EXHAUSTED, attempts_remaining=0)

    if not verify_otp(code, email, token.otp_hash):
        remaining = max(0, settings.otp_max_attempts - attempts)
        logger.info("reset_code_mismatch", token_id=token.id, attempts=attempts)
        return token, OtpCheck(OtpStatus.MISMATCH, attempts_remaining=remaining)

    await release_token_attempt(db, token)
    return token, OtpCheck(OtpStatus.VERIFIED)


async def verify_reset_code(
    db: AsyncSession,
    email: str,
    code: str,
    now: datetime | None = None,
) -> OtpCheck:
    """
    Check a submitted code without consuming it.

    Raises:
        NoActiveTokenError: No unused token exists for the email.
    """
    _token, check = await _check_code(db, normalize_email(email), code, now or datetime.now(timezone.utc))
    return check


async def reset_password(
    db: AsyncSession,
    email: str,
    code: str,
    new_password: str,
    now: datetime | None = None,
) -> OtpCheck:
    """
    Re-check the code, store the new password and retire the token.

    Raises:
        ValidationError: The new password is too weak (checked before the code).
        NoActiveTokenError: No unused token exists for the email.
        NotFoundError: The account disappeared since the code was issued.
    """
    try:
        validate_password_strength(new_password)
    except PasswordStrengthError as e:
        raise ValidationError(str(e)) from e

    email = normalize_email(email)
    token, check = await _check_code(db, email, code, now or datetime.now(timezone.utc))
    if not check.ok:
        return check

    if not await mark_token_used(db, token):
        logger.info("reset_code_already_used", token_id=token.id)
        raise NoActiveTokenError
    updated = await update_user_credential(db, email, hash_password(new_password))
    if not updated:
        msg = "Account not found"
        raise NotFoundError(msg)

    logger.info("password_reset_complete", token_id=token.id)
    return check


async def notify_password_changed(
    db: AsyncSession,
    email: str,
    email_service: EmailService | None = None,
) -> None:
    """Send the password-changed notice. Delivery failures are logged only."""
    email = normalize_email(email)
    user = await get_user_by_email(db, email)
    if user is None:
        return
    service = email_service or get_email_service()
    sent = await service.send_template(
        to=email,
        template_name="password_changed",
        context={"name": user.name or "Member"},
    )
    if not sent:
        logger.warning("password_changed_notice_failed")
