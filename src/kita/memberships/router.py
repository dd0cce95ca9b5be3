"""Membership checkout router: /api/v1/memberships/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kita.database import get_session
from kita.email.service import get_email_service
from kita.memberships.schemas import CheckoutRequest, CheckoutResponse
from kita.memberships.service import checkout_membership

router = APIRouter(prefix="/api/v1/memberships", tags=["Memberships"])


@router.post("/checkout", response_model=CheckoutResponse, status_code=201)
async def checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_session),
) -> CheckoutResponse:
    """Register a member and create the pending (or completed) payment."""
    result = await checkout_membership(db, body, email_service=get_email_service())
    return CheckoutResponse(
        user_id=result.user.id,
        payment_id=result.payment.id,
        payment_reference=result.payment.payment_reference or "",
        status=result.payment.status,
        base_amount=float(result.base_amount),
        discount_amount=float(result.discount_amount),
        final_amount=float(result.final_amount),
        start_date=result.start_date,
        end_date=result.end_date,
    )
