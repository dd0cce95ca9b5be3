"""
Coupon discount evaluation.

Validation never mutates state: ``used_count`` only moves in
``redeem_coupon``, which checkout calls once the payment row exists.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

import structlog

from kita.coupons.repository import find_coupon_by_code, find_plan_by_id, increment_coupon_usage
from kita.db.models import Coupon, DiscountType
from kita.errors import ConflictError, CouponNotFoundError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from kita.coupons.schemas import CouponCreateRequest

logger = structlog.get_logger()

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

MSG_VALID = "Coupon is valid"
# Shared by "no such code" and "deactivated" so codes cannot be probed
MSG_INVALID = "Invalid or inactive coupon code"
MSG_EXPIRED = "Coupon has expired"
MSG_LIMIT_REACHED = "Coupon usage limit reached"
MSG_NOT_APPLICABLE = "Coupon not applicable to selected plan"


@dataclass
class CouponValidation:
    """Result of evaluating a coupon for an order."""

    is_valid: bool
    message: str
    coupon: Coupon | None = None
    base_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO

    @classmethod
    def rejected(cls, message: str, base_amount: Decimal = ZERO) -> CouponValidation:
        return cls(is_valid=False, message=message, base_amount=base_amount, final_amount=base_amount)


def normalize_coupon_code(code: str) -> str:
    """Coupon codes are case-insensitive and whitespace-trimmed."""
    return code.strip().upper()


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_discount(
    base_amount: Decimal,
    discount_type: str,
    discount_value: Decimal,
) -> tuple[Decimal, Decimal]:
    """
    Apply a discount rule to ``base_amount``.

    Returns:
        (discount_amount, final_amount), both non-negative and rounded to cents.
    """
    base = max(ZERO, Decimal(base_amount))
    value = max(ZERO, Decimal(discount_value))

    if discount_type == DiscountType.PERCENTAGE:
        discount = base * min(value, HUNDRED) / HUNDRED
        final = base - discount
    elif discount_type == DiscountType.FIXED_AMOUNT:
        discount = min(value, base)
        final = max(ZERO, base - value)
    elif discount_type == DiscountType.FREE:
        discount = base
        final = ZERO
    else:
        discount = ZERO
        final = base

    return _money(discount), _money(final)


def check_coupon_usable(coupon: Coupon, now: datetime | None = None) -> str | None:
    """
    Check activity, expiry and usage limit.

    Returns:
        None if the coupon can be used, otherwise the rejection message.
    """
    now = now or datetime.now(timezone.utc)
    if not coupon.is_active:
        return MSG_INVALID
    if coupon.expires_at is not None and coupon.expires_at < now:
        return MSG_EXPIRED
    if coupon.max_uses is not None and coupon.used_count >= coupon.max_uses:
        return MSG_LIMIT_REACHED
    return None


async def validate_coupon(
    db: AsyncSession,
    code: str | None,
    plan_id: str | None,
    quantity: int | None,
    now: datetime | None = None,
) -> CouponValidation:
    """
    Decide whether ``code`` applies to ``quantity`` units of ``plan_id`` and price it.

    Raises:
        ValidationError: Missing code, plan or a non-positive quantity.
        CouponNotFoundError: No coupon carries the code.
        NotFoundError: The plan does not exist.
    """
    if not code or not code.strip():
        msg = "Coupon code is required"
        raise ValidationError(msg)
    if not plan_id or quantity is None:
        msg = "Missing required fields"
        raise ValidationError(msg)
    if quantity < 1:
        msg = "Quantity must be at least 1"
        raise ValidationError(msg)

    normalized = normalize_coupon_code(code)
    coupon = await find_coupon_by_code(db, normalized)
    if coupon is None:
        raise CouponNotFoundError

    rejection = check_coupon_usable(coupon, now)
    if rejection is not None:
        logger.info("coupon_rejected", coupon_code=normalized, reason=rejection)
        return CouponValidation.rejected(rejection)

    allowed_plans = coupon.plan_ids
    if allowed_plans and plan_id not in allowed_plans:
        logger.info("coupon_rejected", coupon_code=normalized, reason=MSG_NOT_APPLICABLE, plan_id=plan_id)
        return CouponValidation.rejected(MSG_NOT_APPLICABLE)

    plan = await find_plan_by_id(db, plan_id)
    if plan is None:
        msg = "Invalid membership plan"
        raise NotFoundError(msg)

    base_amount = _money(Decimal(plan.price) * quantity)
    discount_amount, final_amount = compute_discount(base_amount, coupon.discount_type, coupon.discount_value)

    return CouponValidation(
        is_valid=True,
        message=MSG_VALID,
        coupon=coupon,
        base_amount=base_amount,
        discount_amount=discount_amount,
        final_amount=final_amount,
    )


async def get_usable_coupon(db: AsyncSession, code: str, now: datetime | None = None) -> Coupon:
    """
    Code-only check for staff tools: returns the coupon or raises.

    Raises:
        CouponNotFoundError: Unknown code.
        ValidationError: The coupon exists but cannot be used.
    """
    coupon = await find_coupon_by_code(db, normalize_coupon_code(code))
    if coupon is None:
        raise CouponNotFoundError
    rejection = check_coupon_usable(coupon, now)
    if rejection is not None:
        raise ValidationError(rejection)
    return coupon


async def create_coupon(db: AsyncSession, data: CouponCreateRequest) -> Coupon:
    """
    Create a coupon.

    Raises:
        ConflictError: The normalized code is already taken.
        ValidationError: Percentage outside 0-100.
    """
    code = normalize_coupon_code(data.code)
    if data.discount_type == DiscountType.PERCENTAGE and not ZERO <= data.discount_value <= HUNDRED:
        msg = "Percentage discount must be between 0 and 100"
        raise ValidationError(msg)
    if await find_coupon_by_code(db, code) is not None:
        msg = "Coupon code already exists"
        raise ConflictError(msg)

    coupon = Coupon(
        code=code,
        discount_type=DiscountType(data.discount_type).value,
        discount_value=data.discount_value,
        is_active=data.is_active,
        expires_at=data.expires_at,
        max_uses=data.max_uses,
        used_count=0,
        applicable_plan_ids=json.dumps(data.applicable_plan_ids) if data.applicable_plan_ids else None,
    )
    db.add(coupon)
    await db.flush()
    logger.info("coupon_created", coupon_id=coupon.id, coupon_code=code, discount_type=coupon.discount_type)
    return coupon


async def redeem_coupon(db: AsyncSession, coupon_id: str) -> bool:
    """Record one use of a coupon. False if the usage limit was hit meanwhile."""
    redeemed = await increment_coupon_usage(db, coupon_id)
    if not redeemed:
        logger.warning("coupon_redeem_limit_reached", coupon_id=coupon_id)
    return redeemed
