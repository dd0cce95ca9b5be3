"""Middleware registration."""

from fastapi import FastAPI

from kita.config import Settings
from kita.middleware.cors import setup_cors
from kita.middleware.error_handler import setup_error_handlers
from kita.middleware.logging import setup_logging
from kita.middleware.rate_limit import RateLimitMiddleware
from kita.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap the 429s produced by the rate limiter, and the request ID is bound
    before the rate limiter logs anything.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
