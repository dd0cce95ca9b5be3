"""ORM models for the coworking schema.

Payment references live on two tables (``payments`` for members,
``customer_payments`` for guests); uniqueness across both is enforced by
``kita.payments.reference``, each table carries its own unique index.
"""

from __future__ import annotations

import enum
import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    false,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kita.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AwareDateTime(TypeDecorator):
    """DateTime that always comes back UTC-aware.

    SQLite drops the offset on storage; Postgres TIMESTAMPTZ keeps it.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):  # noqa: ANN001, ANN201
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):  # noqa: ANN001, ANN201
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE = "FREE"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, enum.Enum):
    GCASH = "GCASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    FREE_MEMBERSHIP = "FREE_MEMBERSHIP"


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------


class User(Base):
    """Registered member with login credentials."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    contact_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    is_member: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True, onupdate=utcnow)

    payments: Mapped[list[Payment]] = relationship("Payment", back_populates="user")


class Customer(Base):
    """Guest customer (event registrant, walk-in) without an account."""

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    contact_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)

    payments: Mapped[list[CustomerPayment]] = relationship("CustomerPayment", back_populates="customer")


# ---------------------------------------------------------------------------
# Plans & coupons
# ---------------------------------------------------------------------------


class MembershipPlan(Base):
    """Sellable membership plan. ``price`` is per unit of ``duration_days``."""

    __tablename__ = "membership_plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)


class Coupon(Base):
    """Discount rule applied at checkout."""

    __tablename__ = "coupons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    expires_at: Mapped[datetime | None] = mapped_column(AwareDateTime(), nullable=True)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    # JSON-encoded list of plan ids; NULL or "[]" means every plan
    applicable_plan_ids: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)

    @property
    def plan_ids(self) -> list[str]:
        """Decoded ``applicable_plan_ids``. Unparseable values count as unrestricted."""
        if not self.applicable_plan_ids:
            return []
        try:
            decoded = json.loads(self.applicable_plan_ids)
        except ValueError:
            return []
        if not isinstance(decoded, list):
            return []
        return [str(plan_id) for plan_id in decoded]


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class Payment(Base):
    """Payment made by a registered user (membership purchases)."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("membership_plans.id", ondelete="SET NULL"), nullable=True
    )
    coupon_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_reference: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    # Reference number supplied by the payer (bank / e-wallet transaction id)
    reference_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="payments")


class CustomerPayment(Base):
    """Payment made by a guest customer (event registrations, room bookings)."""

    __tablename__ = "customer_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    customer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_reference: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)

    customer: Mapped[Customer] = relationship("Customer", back_populates="payments")


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


class PasswordResetToken(Base):
    """One-time password-reset code. Rows are never deleted (audit trail)."""

    __tablename__ = "password_reset_tokens"
    __table_args__ = (
        Index("ix_password_reset_tokens_email_created", "email", "created_at"),
        # At most one usable token per email
        Index(
            "uq_password_reset_tokens_usable_email",
            "email",
            unique=True,
            postgresql_where=text("used = false"),
            sqlite_where=text("used = 0"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    otp_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(AwareDateTime(), nullable=False, default=utcnow)
