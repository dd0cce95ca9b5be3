"""Tests for payment reference generation."""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conftest import create_user
from kita.db.models import Customer, CustomerPayment, Payment
from kita.errors import ReferenceExhaustedError, ReferenceOverflowError, ValidationError
from kita.payments import reference as reference_module
from kita.payments.reference import (
    format_reference,
    generate_reference,
    generate_unique_reference,
    get_reference_format,
    is_reference_unique,
)

NOW = datetime(2025, 3, 14, 8, 30, tzinfo=timezone.utc)
YEAR = datetime.now(timezone.utc).year


async def _add_payment(db, reference: str) -> None:
    user = await create_user(db, email=f"{reference}@example.com")
    db.add(Payment(user_id=user.id, amount=Decimal("100"), payment_method="GCASH", payment_reference=reference))
    await db.commit()


async def _add_customer_payment(db, reference: str) -> None:
    customer = Customer(email=f"{reference}@example.com", name="Guest")
    db.add(customer)
    await db.flush()
    db.add(
        CustomerPayment(
            customer_id=customer.id, amount=Decimal("250"), payment_method="CASH", payment_reference=reference
        )
    )
    await db.commit()


class TestReferenceFormat:
    def test_event_width_is_three(self):
        fmt = get_reference_format("event")
        assert format_reference(fmt, 2025, 1) == "ev_kita2025_001"

    def test_membership_width_is_four(self):
        fmt = get_reference_format("membership")
        assert format_reference(fmt, 2025, 1) == "mem_kita2025_0001"

    def test_room_alias(self):
        assert get_reference_format("room") == get_reference_format("meeting-room")
        assert format_reference(get_reference_format("room"), 2025, 42) == "mrb_kita2025_042"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            get_reference_format("parking")

    def test_overflow_fails_closed(self):
        fmt = get_reference_format("event")
        assert format_reference(fmt, 2025, 999) == "ev_kita2025_999"
        with pytest.raises(ReferenceOverflowError):
            format_reference(fmt, 2025, 1000)


@pytest.mark.asyncio
class TestGenerateReference:
    async def test_first_reference_of_the_year(self, db_session):
        assert await generate_reference(db_session, "event", now=NOW) == "ev_kita2025_001"
        assert await generate_reference(db_session, "membership", now=NOW) == "mem_kita2025_0001"

    async def test_max_across_both_tables(self, db_session):
        await _add_payment(db_session, "mem_kita2025_0007")
        await _add_customer_payment(db_session, "mem_kita2025_0012")
        assert await generate_reference(db_session, "membership", now=NOW) == "mem_kita2025_0013"

    async def test_suffixes_compared_numerically(self, db_session):
        await _add_customer_payment(db_session, "ev_kita2025_009")
        await _add_customer_payment(db_session, "ev_kita2025_010")
        assert await generate_reference(db_session, "event", now=NOW) == "ev_kita2025_011"

    async def test_non_numeric_suffixes_ignored(self, db_session):
        await _add_customer_payment(db_session, "ev_kita2025_007")
        await _add_customer_payment(db_session, "ev_kita2025_00x")
        await _add_payment(db_session, "ev_kita2025_")
        assert await generate_reference(db_session, "event", now=NOW) == "ev_kita2025_008"

    async def test_sequence_restarts_each_year(self, db_session):
        await _add_customer_payment(db_session, "ev_kita2024_120")
        assert await generate_reference(db_session, "event", now=NOW) == "ev_kita2025_001"

    async def test_other_types_ignored(self, db_session):
        await _add_customer_payment(db_session, "mrb_kita2025_050")
        assert await generate_reference(db_session, "event", now=NOW) == "ev_kita2025_001"
        assert await generate_reference(db_session, "room", now=NOW) == "mrb_kita2025_051"

    async def test_outgrown_width_raises_overflow(self, db_session):
        await _add_customer_payment(db_session, "ev_kita2025_999")
        with pytest.raises(ReferenceOverflowError):
            await generate_reference(db_session, "event", now=NOW)


@pytest.mark.asyncio
class TestUniqueReference:
    async def test_is_reference_unique(self, db_session):
        await _add_payment(db_session, "mem_kita2025_0001")
        assert await is_reference_unique(db_session, "mem_kita2025_0001") is False
        assert await is_reference_unique(db_session, "mem_kita2025_0002") is True

    async def test_is_reference_unique_is_idempotent(self, db_session):
        await _add_customer_payment(db_session, "ev_kita2025_001")
        first = await is_reference_unique(db_session, "ev_kita2025_001")
        second = await is_reference_unique(db_session, "ev_kita2025_001")
        assert first is second is False

    async def test_returns_next_after_existing(self, db_session):
        await _add_payment(db_session, f"mem_kita{YEAR}_0003")
        await _add_customer_payment(db_session, f"mem_kita{YEAR}_0005")
        reference = await generate_unique_reference(db_session, "membership")
        assert reference == f"mem_kita{YEAR}_0006"
        assert await is_reference_unique(db_session, reference)

    async def test_retries_with_linear_backoff_then_gives_up(self, db_session, monkeypatch):
        sleep = AsyncMock()
        monkeypatch.setattr(reference_module, "asyncio", SimpleNamespace(sleep=sleep))
        monkeypatch.setattr(reference_module, "is_reference_unique", AsyncMock(return_value=False))
        monkeypatch.setenv("KITA_REFERENCE_BACKOFF_MS", "100")
        from kita.config import get_settings

        get_settings.cache_clear()

        with pytest.raises(ReferenceExhaustedError):
            await generate_unique_reference(db_session, "event", max_retries=3)

        delays = [call.args[0] for call in sleep.await_args_list]
        assert delays == pytest.approx([0.1, 0.2, 0.3])

    async def test_collision_then_success(self, db_session, monkeypatch):
        monkeypatch.setattr(reference_module, "asyncio", SimpleNamespace(sleep=AsyncMock()))
        unique = AsyncMock(side_effect=[False, True])
        monkeypatch.setattr(reference_module, "is_reference_unique", unique)

        reference = await generate_unique_reference(db_session, "event")
        assert reference == f"ev_kita{YEAR}_001"
        assert unique.await_count == 2
