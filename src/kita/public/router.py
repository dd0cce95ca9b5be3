"""
Public website API: /api/v1/public/* endpoints.

Consumed by the WordPress embeds, so every route needs the site API key
and is capped per client IP with the shared fixed-window counter.
"""

from __future__ import annotations

import redis.asyncio as redis
import structlog
from fastapi import APIRouter, Depends, Request, Response
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kita.auth.dependencies import require_public_api_key
from kita.config import get_settings
from kita.database import get_session
from kita.db.models import MembershipPlan
from kita.dependencies import get_redis_dep
from kita.errors import RateLimitError
from kita.middleware.rate_limit import client_ip, hit_fixed_window, rate_limit_headers
from kita.public.schemas import PublicPlan, PublicPlanList

logger = structlog.get_logger()


async def public_rate_limit(
    request: Request,
    response: Response,
    redis_client: redis.Redis | None = Depends(get_redis_dep),
) -> None:
    """Fixed-window cap for the public API. Passes when Redis is unavailable."""
    if redis_client is None:
        return
    settings = get_settings()
    try:
        hit = await hit_fixed_window(
            redis_client,
            f"public:{client_ip(request)}",
            settings.public_rate_limit_requests,
            settings.public_rate_limit_window_seconds,
        )
    except RedisError:
        logger.warning("public_rate_limit_unavailable")
        return
    if not hit.allowed:
        raise RateLimitError(retry_after=hit.reset_in)
    response.headers.update(rate_limit_headers(hit))


router = APIRouter(
    prefix="/api/v1/public",
    tags=["Public"],
    dependencies=[Depends(require_public_api_key), Depends(public_rate_limit)],
)


@router.get("/membership-plans", response_model=PublicPlanList)
async def list_membership_plans(db: AsyncSession = Depends(get_session)) -> PublicPlanList:
    """Active plans, cheapest first."""
    result = await db.execute(
        select(MembershipPlan).where(MembershipPlan.is_active.is_(True)).order_by(MembershipPlan.price.asc())
    )
    return PublicPlanList(data=[PublicPlan.model_validate(plan) for plan in result.scalars()])
