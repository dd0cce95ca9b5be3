"""Redis-backed fixed window rate limiting.

``hit_fixed_window`` is the shared counter: one ``INCR`` + ``EXPIRE`` per
(key, window bucket), so every API instance sees the same count. The global
middleware and the public API dependency both use it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from kita.redis_client import get_redis

if TYPE_CHECKING:
    import redis.asyncio as redis

logger = structlog.get_logger()

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready"})


@dataclass(frozen=True)
class WindowHit:
    """Counter state after one request was recorded."""

    count: int
    limit: int
    reset_in: int

    @property
    def allowed(self) -> bool:
        return self.count <= self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


async def hit_fixed_window(
    redis_client: redis.Redis,
    key: str,
    limit: int,
    window_seconds: int,
    now: float | None = None,
) -> WindowHit:
    """Record one request against ``key`` in the current window bucket."""
    now = time.time() if now is None else now
    bucket = int(now) // window_seconds
    rate_key = f"ratelimit:{key}:{bucket}"

    pipe = redis_client.pipeline()
    pipe.incr(rate_key)
    pipe.expire(rate_key, window_seconds + 1)
    results: list[Any] = await pipe.execute()

    reset_in = max(1, (bucket + 1) * window_seconds - int(now))
    return WindowHit(count=int(results[0]), limit=limit, reset_in=reset_in)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def rate_limit_headers(hit: WindowHit) -> dict[str, str]:
    headers = {
        "X-RateLimit-Remaining": str(hit.remaining),
        "X-RateLimit-Limit": str(hit.limit),
    }
    if not hit.allowed:
        headers["Retry-After"] = str(hit.reset_in)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per IP using Redis counters."""

    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        try:
            hit = await hit_fixed_window(
                get_redis(),
                f"global:{client_ip(request)}",
                self.requests_per_window,
                self.window_seconds,
            )
        except RuntimeError:
            # Redis not initialized
            return await call_next(request)
        except RedisError:
            logger.warning("rate_limit_backend_unavailable", path=request.url.path)
            return await call_next(request)

        if not hit.allowed:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers=rate_limit_headers(hit),
            )

        response = await call_next(request)
        response.headers.update(rate_limit_headers(hit))
        return response
