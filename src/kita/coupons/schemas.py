"""Request/response schemas for coupon endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from kita.db.models import DiscountType


class ValidateCouponRequest(BaseModel):
    """Check a coupon against a membership plan order.

    Fields are optional here so that missing values surface as the
    endpoint's own 400 rather than a schema 422.
    """

    coupon_code: str | None = None
    plan_id: str | None = None
    quantity: int | None = None


class CouponSummary(BaseModel):
    """Public view of a coupon."""

    id: str
    code: str
    discount_type: DiscountType
    discount_value: float
    expires_at: datetime | None = None
    max_uses: int | None = None
    used_count: int = 0
    applicable_plan_ids: list[str] = Field(default_factory=list)


class CouponValidationResponse(BaseModel):
    """Outcome of a coupon check. ``is_valid=False`` is a normal response."""

    is_valid: bool
    message: str
    coupon: CouponSummary | None = None
    base_amount: float = 0
    discount_amount: float = 0
    final_amount: float = 0


class AdminValidateCouponRequest(BaseModel):
    """Code-only coupon check used by staff when booking on behalf of a customer."""

    code: str | None = None


class CouponCreateRequest(BaseModel):
    """Create a coupon."""

    code: str = Field(..., min_length=3, max_length=64)
    discount_type: DiscountType
    discount_value: Decimal = Field(Decimal("0"), ge=0)
    is_active: bool = True
    expires_at: datetime | None = None
    max_uses: int | None = Field(None, ge=1)
    applicable_plan_ids: list[str] | None = None

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v: object) -> object:
        """Codes are stored upper-case and trimmed; length is checked afterwards."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @model_validator(mode="after")
    def check_percentage_range(self) -> CouponCreateRequest:
        """Percentages must be within 0-100."""
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            msg = "Percentage discount cannot exceed 100"
            raise ValueError(msg)
        return self
