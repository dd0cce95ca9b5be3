"""
Payment reference numbers.

Format: ``<prefix><year>_<sequence>``, e.g. ``ev_kita2025_001`` or
``mem_kita2025_0001``. Sequences restart every calendar year because the
year is part of the prefix.

Generation is optimistic: two concurrent callers may compute the same
candidate, so every candidate is checked against both payment tables and
regenerated with linear backoff on collision.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from kita.config import get_settings
from kita.errors import ReferenceExhaustedError, ReferenceOverflowError, ValidationError
from kita.payments.repository import (
    PAYMENT_TABLES,
    find_max_reference_sequence,
    reference_exists,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass(frozen=True)
class ReferenceFormat:
    prefix: str
    width: int

    def search_prefix(self, year: int) -> str:
        return f"{self.prefix}{year}_"

    @property
    def max_sequence(self) -> int:
        return 10**self.width - 1


REFERENCE_FORMATS: dict[str, ReferenceFormat] = {
    "event": ReferenceFormat("ev_kita", 3),
    "membership": ReferenceFormat("mem_kita", 4),
    "meeting-room": ReferenceFormat("mrb_kita", 3),
}

# Accepted spellings that map onto a canonical type
_ALIASES = {"room": "meeting-room"}


def get_reference_format(reference_type: str) -> ReferenceFormat:
    """Resolve a reference type (or alias) to its format."""
    canonical = _ALIASES.get(reference_type, reference_type)
    fmt = REFERENCE_FORMATS.get(canonical)
    if fmt is None:
        msg = f"Invalid reference type: {reference_type}"
        raise ValidationError(msg)
    return fmt


def format_reference(fmt: ReferenceFormat, year: int, sequence: int) -> str:
    """Render a reference, refusing sequences that do not fit the width."""
    if sequence > fmt.max_sequence:
        msg = f"{fmt.prefix}{year} sequence exceeded {fmt.max_sequence}"
        raise ReferenceOverflowError(msg)
    return f"{fmt.search_prefix(year)}{sequence:0{fmt.width}d}"


async def generate_reference(
    db: AsyncSession,
    reference_type: str,
    now: datetime | None = None,
) -> str:
    """
    Compute the next reference for ``reference_type`` in the current year.

    Takes the numeric max of the sequences already issued on both payment
    tables and adds one. The result is only *likely* unique; callers must
    check it with ``is_reference_unique`` (or use ``generate_unique_reference``).

    Raises:
        ValidationError: Unknown reference type.
        ReferenceOverflowError: The year's sequence no longer fits the width.
    """
    fmt = get_reference_format(reference_type)
    year = (now or datetime.now(timezone.utc)).year
    prefix = fmt.search_prefix(year)

    highest = 0
    for model in PAYMENT_TABLES:
        seq = await find_max_reference_sequence(db, model, prefix)
        if seq is not None:
            highest = max(highest, seq)

    return format_reference(fmt, year, highest + 1)


async def is_reference_unique(db: AsyncSession, reference: str) -> bool:
    """True iff no payment table holds ``reference``."""
    return not await reference_exists(db, reference)


async def generate_unique_reference(
    db: AsyncSession,
    reference_type: str,
    max_retries: int | None = None,
) -> str:
    """
    Generate a reference and confirm it is unused, retrying on collision.

    After the i-th failed attempt the call sleeps ``backoff * i``.

    Raises:
        ReferenceExhaustedError: No unique reference after ``max_retries`` attempts.
    """
    settings = get_settings()
    retries = settings.reference_max_retries if max_retries is None else max_retries
    backoff = settings.reference_backoff_ms / 1000

    for attempt in range(1, retries + 1):
        reference = await generate_reference(db, reference_type)
        if await is_reference_unique(db, reference):
            logger.info("reference_generated", reference=reference, attempt=attempt)
            return reference

        logger.warning("reference_collision", reference=reference, attempt=attempt)
        await asyncio.sleep(backoff * attempt)

    logger.error("reference_exhausted", reference_type=reference_type, attempts=retries)
    raise ReferenceExhaustedError
