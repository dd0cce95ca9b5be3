"""User and password-reset token queries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.orm.attributes import set_committed_value

from kita.db.models import PasswordResetToken, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def update_user_credential(db: AsyncSession, email: str, password_hash: str) -> bool:
    """Store a new password hash. Returns False if no user has this email."""
    result = await db.execute(
        update(User)
        .where(func.lower(User.email) == email.lower())
        .values(password_hash=password_hash, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return bool(result.rowcount)


# ---------------------------------------------------------------------------
# Password reset tokens
# ---------------------------------------------------------------------------


async def count_reset_tokens_since(db: AsyncSession, email: str, since: datetime) -> int:
    """Number of tokens issued for ``email`` at or after ``since``."""
    result = await db.execute(
        select(func.count())
        .select_from(PasswordResetToken)
        .where(PasswordResetToken.email == email)
        .where(PasswordResetToken.created_at >= since)
    )
    return int(result.scalar_one())


async def oldest_reset_token_since(db: AsyncSession, email: str, since: datetime) -> datetime | None:
    """Creation time of the oldest token issued for ``email`` at or after ``since``."""
    result = await db.execute(
        select(func.min(PasswordResetToken.created_at))
        .where(PasswordResetToken.email == email)
        .where(PasswordResetToken.created_at >= since)
    )
    return result.scalar_one_or_none()


async def find_latest_usable_reset_token(db: AsyncSession, email: str) -> PasswordResetToken | None:
    """
    Most recent unused token for ``email``.

    Expiry is deliberately not filtered here so callers can tell an expired
    code apart from a missing one.
    """
    result = await db.execute(
        select(PasswordResetToken)
        .where(PasswordResetToken.email == email)
        .where(PasswordResetToken.used == False)  # noqa: E712
        .order_by(PasswordResetToken.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def invalidate_usable_reset_tokens(db: AsyncSession, email: str) -> int:
    """Mark every unused token for ``email`` as used. Returns the count."""
    result = await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.email == email)
        .where(PasswordResetToken.used == False)  # noqa: E712
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount  # type: ignore[return-value]


async def create_reset_token(
    db: AsyncSession,
    email: str,
    otp_hash: str,
    expires_at: datetime,
    now: datetime | None = None,
) -> PasswordResetToken:
    """Insert a fresh token with zero attempts."""
    token = PasswordResetToken(
        email=email,
        otp_hash=otp_hash,
        expires_at=expires_at,
        used=False,
        attempts=0,
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(token)
    await db.flush()
    return token


async def increment_token_attempts(
    db: AsyncSession,
    token: PasswordResetToken,
    max_attempts: int,
) -> int | None:
    """
    Claim one attempt on a live token before its code is compared.

    The conditional UPDATE is the only gate on the attempt cap, so parallel
    submissions cannot all pass a stale in-memory count. Returns the new
    attempt count, or None when the token is used or out of attempts.
    """
    result = await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.id == token.id)
        .where(PasswordResetToken.used == False)  # noqa: E712
        .where(PasswordResetToken.attempts < max_attempts)
        .values(attempts=PasswordResetToken.attempts + 1)
        .returning(PasswordResetToken.attempts)
        .execution_options(synchronize_session=False)
    )
    attempts = result.scalar_one_or_none()
    if attempts is not None:
        set_committed_value(token, "attempts", attempts)
    return attempts


async def release_token_attempt(db: AsyncSession, token: PasswordResetToken) -> None:
    """Give back an attempt claimed by a submission that turned out correct."""
    await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.id == token.id)
        .where(PasswordResetToken.attempts > 0)
        .values(attempts=PasswordResetToken.attempts - 1)
        .execution_options(synchronize_session=False)
    )
    set_committed_value(token, "attempts", max(0, token.attempts - 1))


async def mark_token_used(db: AsyncSession, token: PasswordResetToken) -> bool:
    """
    Retire a token if it is still unused.

    Returns False when another request retired it first.
    """
    result = await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.id == token.id)
        .where(PasswordResetToken.used == False)  # noqa: E712
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    claimed = bool(result.rowcount)
    if claimed:
        set_committed_value(token, "used", True)
    return claimed
