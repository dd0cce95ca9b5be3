"""
Domain exceptions.

Each exception carries the HTTP status it maps to; the global handler in
``kita.middleware.error_handler`` renders them as ``{"detail": ...}``.
Expected business outcomes (an unusable coupon, a wrong OTP) are NOT
exceptions; see ``CouponValidation`` and ``OtpCheck``.
"""

from __future__ import annotations


class KitaError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(KitaError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(KitaError):
    """A referenced record does not exist."""

    status_code = 404
    default_message = "Not found"


class CouponNotFoundError(NotFoundError):
    """No coupon carries the given code."""

    default_message = "Coupon code not found"


class ConflictError(KitaError):
    """A uniqueness rule would be violated."""

    status_code = 409
    default_message = "Already exists"


class AuthenticationError(KitaError):
    """Missing or wrong API key."""

    status_code = 401
    default_message = "Invalid or missing API key"


class RateLimitError(KitaError):
    """Too many requests. ``retry_after`` is in seconds."""

    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 60) -> None:
        super().__init__(message)
        self.retry_after = max(1, int(retry_after))


class NoActiveTokenError(KitaError):
    """No unused password-reset token exists for the email."""

    status_code = 400
    default_message = "Invalid or expired reset code."


class ReferenceExhaustedError(KitaError):
    """Could not produce a unique payment reference. Safe to retry later."""

    status_code = 503
    default_message = "Failed to generate a unique payment reference. Please try again."


class ReferenceOverflowError(KitaError):
    """The yearly sequence no longer fits the reference width."""

    status_code = 500
    default_message = "Payment reference sequence exhausted for this year"


class DispatchError(KitaError):
    """An outbound email could not be delivered."""

    status_code = 502
    default_message = "Failed to send email. Please try again."
