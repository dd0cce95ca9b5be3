"""Payment-reference queries over both payment tables."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sqlalchemy import Integer, cast, func, select

from kita.db.models import CustomerPayment, Payment

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# Tables that independently store payment references
PAYMENT_TABLES: tuple[type[Payment] | type[CustomerPayment], ...] = (Payment, CustomerPayment)


async def find_max_reference_sequence(
    db: AsyncSession,
    model: type[Payment] | type[CustomerPayment],
    prefix: str,
) -> int | None:
    """
    Highest numeric sequence among references on ``model`` starting with ``prefix``.

    Suffixes are cast to integers in the database, so a reference that
    outgrew its zero-padded width still sorts correctly. References whose
    suffix is not all digits are ignored.
    """
    column = model.payment_reference
    sequence = cast(func.substr(column, len(prefix) + 1), Integer)
    result = await db.execute(
        select(func.max(sequence))
        .where(column.startswith(prefix, autoescape=True))
        .where(column.regexp_match(f"^{re.escape(prefix)}[0-9]+$"))
    )
    highest = result.scalar_one_or_none()
    return int(highest) if highest is not None else None


async def reference_exists(db: AsyncSession, reference: str) -> bool:
    """True if any payment table already carries ``reference``."""
    for model in PAYMENT_TABLES:
        result = await db.execute(
            select(model.id).where(model.payment_reference == reference).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            return True
    return False
