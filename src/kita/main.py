"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kita.auth.router import router as auth_router
from kita.config import get_settings
from kita.coupons.router import admin_router as admin_coupons_router
from kita.coupons.router import router as coupons_router
from kita.database import close_db, init_db
from kita.health.router import router as health_router
from kita.memberships.router import router as memberships_router
from kita.middleware import setup_middleware
from kita.public.router import router as public_router
from kita.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="KITA Spaces API",
        description="Backend API for KITA Spaces: memberships, coupons and account recovery",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(coupons_router)
    app.include_router(admin_coupons_router)
    app.include_router(memberships_router)
    app.include_router(public_router)

    return app


app = create_app()
