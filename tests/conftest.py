"""Shared test fixtures.

Every test gets its own SQLite database file (created from the ORM
metadata) and an in-memory stand-in for the Redis counters.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from kita.config import get_settings
from kita.database import close_db, get_engine, init_db
from kita.db.base import Base
from kita.db.models import Coupon, MembershipPlan, User
from kita.email.service import reset_email_service

PUBLIC_KEY = "test-public-key"
ADMIN_KEY = "test-admin-key"


class FakeRedis:
    """The handful of Redis commands the rate limiters use."""

    def __init__(self) -> None:
        self.store: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.store[key] = self.store.get(key, 0) + 1
        return self.store[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def ping(self) -> bool:
        return True

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self)


class _FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._ops: list[tuple[Any, ...]] = []

    def incr(self, key: str) -> _FakePipeline:
        self._ops.append(("incr", key))
        return self

    def expire(self, key: str, seconds: int) -> _FakePipeline:
        self._ops.append(("expire", key, seconds))
        return self

    async def execute(self) -> list[Any]:
        results = [await getattr(self._redis, name)(*args) for name, *args in self._ops]
        self._ops = []
        return results


@pytest.fixture(autouse=True)
def settings_env(tmp_path, monkeypatch):
    """Point the app at a throwaway database and fixed secrets."""
    monkeypatch.setenv("KITA_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'kita.db'}")
    monkeypatch.setenv("KITA_OTP_SECRET", "test-otp-secret")
    monkeypatch.setenv("KITA_PUBLIC_API_KEY", PUBLIC_KEY)
    monkeypatch.setenv("KITA_ADMIN_API_KEY", ADMIN_KEY)
    monkeypatch.setenv("KITA_LOG_FORMAT", "console")
    monkeypatch.setenv("KITA_REFERENCE_BACKOFF_MS", "0")
    get_settings.cache_clear()
    reset_email_service()
    yield get_settings()
    get_settings.cache_clear()
    reset_email_service()


@pytest_asyncio.fixture
async def database(settings_env) -> AsyncGenerator[None, None]:
    """Initialize the engine and create the schema."""
    await init_db(settings_env.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for arranging data and asserting on it."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    redis = FakeRedis()
    monkeypatch.setattr("kita.redis_client._pool", redis)
    return redis


@pytest_asyncio.fixture
async def client(database, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over the ASGI app."""
    from kita.main import create_app

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_email_service(monkeypatch) -> MagicMock:
    """Capture outgoing email instead of sending it."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("kita.auth.router.get_email_service", lambda *a, **kw: mock_service)
    monkeypatch.setattr("kita.memberships.router.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


def sent_code(mock_service: MagicMock) -> str:
    """The OTP from the most recent password_reset_code email."""
    for call in reversed(mock_service.send_template.call_args_list):
        if call.kwargs["template_name"] == "password_reset_code":
            return call.kwargs["context"]["code"]
    msg = "no reset code was sent"
    raise AssertionError(msg)


async def create_user(db: AsyncSession, email: str = "member@example.com", name: str = "Maria") -> User:
    user = User(email=email, name=name, contact_number="09171234567")
    db.add(user)
    await db.commit()
    return user


async def create_plan(
    db: AsyncSession,
    price: str = "100.00",
    name: str = "Monthly Hot Desk",
    duration_days: int = 30,
    is_active: bool = True,
) -> MembershipPlan:
    plan = MembershipPlan(name=name, price=Decimal(price), duration_days=duration_days, is_active=is_active)
    db.add(plan)
    await db.commit()
    return plan


async def create_coupon(db: AsyncSession, code: str = "SAVE10", **overrides: Any) -> Coupon:
    values: dict[str, Any] = {
        "discount_type": "PERCENTAGE",
        "discount_value": Decimal("10"),
        "is_active": True,
        "used_count": 0,
    }
    values.update(overrides)
    coupon = Coupon(code=code, **values)
    db.add(coupon)
    await db.commit()
    return coupon


@pytest_asyncio.fixture
async def member(db_session) -> User:
    return await create_user(db_session)


@pytest_asyncio.fixture
async def plan(db_session) -> MembershipPlan:
    return await create_plan(db_session)
