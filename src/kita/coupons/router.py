"""Coupon endpoints: public order pricing and staff coupon management."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from kita.auth.dependencies import require_admin_api_key
from kita.coupons.schemas import (
    AdminValidateCouponRequest,
    CouponCreateRequest,
    CouponSummary,
    CouponValidationResponse,
    ValidateCouponRequest,
)
from kita.coupons.service import (
    MSG_INVALID,
    CouponValidation,
    create_coupon,
    get_usable_coupon,
    validate_coupon,
)
from kita.database import get_session
from kita.db.models import Coupon
from kita.errors import CouponNotFoundError, NotFoundError, ValidationError

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/coupons", tags=["Coupons"])
admin_router = APIRouter(
    prefix="/api/v1/admin/coupons",
    tags=["Admin"],
    dependencies=[Depends(require_admin_api_key)],
)


def _coupon_summary(coupon: Coupon) -> CouponSummary:
    return CouponSummary(
        id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=float(coupon.discount_value),
        expires_at=coupon.expires_at,
        max_uses=coupon.max_uses,
        used_count=coupon.used_count,
        applicable_plan_ids=coupon.plan_ids,
    )


def _validation_response(result: CouponValidation) -> CouponValidationResponse:
    return CouponValidationResponse(
        is_valid=result.is_valid,
        message=result.message,
        coupon=_coupon_summary(result.coupon) if result.is_valid and result.coupon else None,
        base_amount=float(result.base_amount),
        discount_amount=float(result.discount_amount),
        final_amount=float(result.final_amount),
    )


@router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon_endpoint(
    body: ValidateCouponRequest,
    db: AsyncSession = Depends(get_session),
) -> CouponValidationResponse:
    """Price a membership order with a coupon. Unusable coupons still return 200."""
    try:
        result = await validate_coupon(db, body.coupon_code, body.plan_id, body.quantity)
    except CouponNotFoundError:
        return CouponValidationResponse(is_valid=False, message=MSG_INVALID)
    except NotFoundError as e:
        raise ValidationError(e.message) from e
    return _validation_response(result)


@admin_router.post("", response_model=CouponSummary, status_code=201)
async def create_coupon_endpoint(
    body: CouponCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> CouponSummary:
    """Create a coupon."""
    coupon = await create_coupon(db, body)
    await db.commit()
    return _coupon_summary(coupon)


@admin_router.post("/validate", response_model=CouponSummary)
async def admin_validate_coupon(
    body: AdminValidateCouponRequest,
    db: AsyncSession = Depends(get_session),
) -> CouponSummary:
    """Staff check of a code; unlike the public route, unknown codes are a 404."""
    if not body.code or not body.code.strip():
        msg = "Coupon code is required"
        raise ValidationError(msg)
    coupon = await get_usable_coupon(db, body.code)
    return _coupon_summary(coupon)
