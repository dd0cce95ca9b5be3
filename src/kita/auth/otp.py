"""
One-time password codes for password reset.

Codes are 6 ASCII digits drawn uniformly from 100000-999999 with a
cryptographic random source. Only an HMAC-SHA256 of ``code:email`` keyed with
the server secret is stored.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from kita.config import get_settings

OTP_MIN = 100_000
OTP_MAX = 999_999
OTP_LENGTH = 6


def generate_otp() -> str:
    """Generate a random 6-digit code."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def hash_otp(code: str, email: str) -> str:
    """Keyed hash of the code bound to the email it was issued for."""
    secret = get_settings().otp_secret.encode()
    return hmac.new(secret, f"{code}:{email}".encode(), hashlib.sha256).hexdigest()


def verify_otp(code: str, email: str, otp_hash: str) -> bool:
    """Constant-time check of a submitted code against the stored hash."""
    return hmac.compare_digest(hash_otp(code, email), otp_hash)


def otp_expiry(now: datetime | None = None) -> datetime:
    """Expiry timestamp for a code issued at ``now``."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=get_settings().otp_ttl_minutes)


def is_otp_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    return (now or datetime.now(timezone.utc)) > expires_at
