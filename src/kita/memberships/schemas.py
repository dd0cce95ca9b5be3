"""Request/response schemas for membership checkout."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from kita.db.models import PaymentMethod


class CheckoutRequest(BaseModel):
    """Membership registration submitted from the signup form."""

    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    contact_number: str = Field(..., min_length=1, max_length=32)
    password: str | None = Field(None, max_length=128)
    plan_id: str
    quantity: int = Field(1, ge=1)
    payment_method: PaymentMethod
    # Transaction id from the payer's bank / e-wallet
    reference_number: str | None = Field(None, max_length=128)
    coupon_code: str | None = None
    agree_to_terms: bool = False
    agree_to_house_rules: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class CheckoutResponse(BaseModel):
    """Created payment, with the reference the member quotes to staff."""

    success: bool = True
    user_id: str
    payment_id: str
    payment_reference: str
    status: str
    base_amount: float
    discount_amount: float
    final_amount: float
    start_date: datetime
    end_date: datetime
