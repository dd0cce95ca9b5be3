"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis

from kita.database import get_session as _get_session
from kita.redis_client import get_redis as _get_redis

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[redis.Redis | None, None]:
    """Yield the Redis client, or None when Redis was never initialized."""
    try:
        client = _get_redis()
    except RuntimeError:
        client = None
    yield client
