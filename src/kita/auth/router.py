"""Password reset router: /api/v1/auth/forgot-password/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from kita.auth.schemas import (
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    VerifyResetCodeRequest,
)
from kita.auth.service import (
    GENERIC_REQUEST_MESSAGE,
    notify_password_changed,
    request_password_reset,
    reset_password,
    verify_reset_code,
)
from kita.database import get_session
from kita.email.service import get_email_service

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth/forgot-password", tags=["Authentication"])


@router.post("/request", response_model=MessageResponse)
async def request_code(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Email a reset code. Answers identically whether or not the account exists."""
    await request_password_reset(db, body.email, email_service=get_email_service())
    return MessageResponse(message=GENERIC_REQUEST_MESSAGE)


@router.post("/verify", response_model=MessageResponse)
async def verify_code(
    body: VerifyResetCodeRequest,
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Check a reset code. The code stays valid for the reset step."""
    check = await verify_reset_code(db, body.email, body.otp)
    await db.commit()
    if not check.ok:
        raise HTTPException(status_code=400, detail=check.message)
    return MessageResponse(message=check.message)


@router.post("/reset", response_model=MessageResponse)
async def reset(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Set a new password. The code is checked again and then retired."""
    check = await reset_password(db, body.email, body.otp, body.new_password)
    await db.commit()
    if not check.ok:
        raise HTTPException(status_code=400, detail=check.message)
    await notify_password_changed(db, body.email, email_service=get_email_service())
    return MessageResponse(message="Password reset successfully.")
