"""Request/response schemas for the password reset endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator


class _EmailRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class ForgotPasswordRequest(_EmailRequest):
    """Ask for a reset code to be emailed."""


class VerifyResetCodeRequest(_EmailRequest):
    """Check a reset code."""

    otp: str = Field(..., pattern=r"^\d{6}$")


class ResetPasswordRequest(_EmailRequest):
    """Set a new password using a reset code."""

    otp: str = Field(..., pattern=r"^\d{6}$")
    new_password: str = Field(..., min_length=1, max_length=128)


class MessageResponse(BaseModel):
    """Generic success envelope."""

    success: bool = True
    message: str
