"""Coupon and plan queries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update

from kita.db.models import Coupon, MembershipPlan

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def find_coupon_by_code(db: AsyncSession, code: str) -> Coupon | None:
    """Fetch a coupon by its (already normalized) code."""
    result = await db.execute(select(Coupon).where(Coupon.code == code))
    return result.scalar_one_or_none()


async def find_plan_by_id(db: AsyncSession, plan_id: str) -> MembershipPlan | None:
    """Fetch a membership plan by ID."""
    result = await db.execute(select(MembershipPlan).where(MembershipPlan.id == plan_id))
    return result.scalar_one_or_none()


async def increment_coupon_usage(db: AsyncSession, coupon_id: str) -> bool:
    """
    Bump ``used_count`` unless the coupon is already at ``max_uses``.

    A single conditional UPDATE, so concurrent redemptions cannot overshoot
    the limit. Returns False when no row was updated.
    """
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .where((Coupon.max_uses.is_(None)) | (Coupon.used_count < Coupon.max_uses))
        .values(used_count=Coupon.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return bool(result.rowcount)
