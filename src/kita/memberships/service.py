"""
Membership checkout.

Turns a signup form into a user, a payment row carrying a fresh
``mem_kita`` reference and, when a coupon was applied, one coupon use.
Fully discounted orders are completed immediately; everything else waits
for staff to verify the payment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from kita.auth.password import PasswordStrengthError, hash_password, validate_password_strength
from kita.auth.repository import get_user_by_email
from kita.coupons.repository import find_plan_by_id
from kita.coupons.service import MSG_INVALID, MSG_LIMIT_REACHED, ZERO, redeem_coupon, validate_coupon
from kita.db.models import Customer, Payment, PaymentMethod, PaymentStatus, User
from kita.email.service import get_email_service
from kita.errors import CouponNotFoundError, ValidationError
from kita.payments.reference import generate_unique_reference

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from kita.email.service import EmailService
    from kita.memberships.schemas import CheckoutRequest

logger = structlog.get_logger()

# Whole-unit retries when a concurrent checkout wins a unique index
MAX_CHECKOUT_ATTEMPTS = 3


@dataclass
class CheckoutResult:
    user: User
    payment: Payment
    plan_name: str
    base_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    start_date: datetime
    end_date: datetime
    coupon_code: str | None = None

    @property
    def is_free(self) -> bool:
        return self.final_amount == ZERO


async def _price_order(
    db: AsyncSession,
    request: CheckoutRequest,
    base_amount: Decimal,
    now: datetime,
) -> tuple[Decimal, Decimal, str | None, str | None]:
    """Returns (discount, final, coupon_id, coupon_code)."""
    if not request.coupon_code or not request.coupon_code.strip():
        return ZERO, base_amount, None, None
    try:
        result = await validate_coupon(db, request.coupon_code, request.plan_id, request.quantity, now=now)
    except CouponNotFoundError as e:
        raise ValidationError(MSG_INVALID) from e
    if not result.is_valid or result.coupon is None:
        raise ValidationError(result.message)
    return result.discount_amount, result.final_amount, result.coupon.id, result.coupon.code


async def checkout_membership(
    db: AsyncSession,
    request: CheckoutRequest,
    email_service: EmailService | None = None,
    now: datetime | None = None,
) -> CheckoutResult:
    """
    Register a member and record their membership payment.

    Raises:
        ValidationError: Bad plan, unusable coupon, taken email, weak password
            or missing agreements.
        ReferenceExhaustedError: No unique payment reference could be produced.
    """
    now = now or datetime.now(timezone.utc)
    email = request.email.strip().lower()

    if not request.agree_to_terms or not request.agree_to_house_rules:
        msg = "You must agree to terms and house rules"
        raise ValidationError(msg)

    plan = await find_plan_by_id(db, request.plan_id)
    if plan is None or not plan.is_active:
        msg = "Invalid or inactive membership plan"
        raise ValidationError(msg)
    plan_name = plan.name
    duration = timedelta(days=plan.duration_days * request.quantity)
    base_amount = (Decimal(plan.price) * request.quantity).quantize(Decimal("0.01"))

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ValidationError(msg)

    password_hash = None
    if request.password:
        try:
            validate_password_strength(request.password)
        except PasswordStrengthError as e:
            raise ValidationError(str(e)) from e
        password_hash = hash_password(request.password)

    discount_amount, final_amount, coupon_id, coupon_code = await _price_order(db, request, base_amount, now)
    is_free = final_amount == ZERO

    for attempt in range(1, MAX_CHECKOUT_ATTEMPTS + 1):
        try:
            user = User(
                email=email,
                name=request.name.strip(),
                contact_number=request.contact_number.strip(),
                password_hash=password_hash,
                is_member=is_free,
            )
            db.add(user)
            await db.flush()

            guest = await db.execute(select(Customer).where(Customer.email == email, Customer.user_id.is_(None)))
            for customer in guest.scalars():
                customer.user_id = user.id

            reference = await generate_unique_reference(db, "membership")
            payment = Payment(
                user_id=user.id,
                plan_id=request.plan_id,
                coupon_id=coupon_id,
                quantity=request.quantity,
                amount=final_amount,
                discount_amount=discount_amount,
                payment_method=(PaymentMethod.FREE_MEMBERSHIP if is_free else request.payment_method).value,
                status=(PaymentStatus.COMPLETED if is_free else PaymentStatus.PENDING).value,
                payment_reference=reference,
                reference_number=request.reference_number,
                created_at=now,
            )
            db.add(payment)
            await db.flush()

            if coupon_id is not None and not await redeem_coupon(db, coupon_id):
                await db.rollback()
                raise ValidationError(MSG_LIMIT_REACHED)

            await db.commit()
            break
        except IntegrityError:
            await db.rollback()
            if attempt == MAX_CHECKOUT_ATTEMPTS:
                raise
            logger.warning("checkout_conflict_retry", attempt=attempt)
            if await get_user_by_email(db, email) is not None:
                msg = "Email already registered"
                raise ValidationError(msg) from None

    logger.info(
        "membership_checkout",
        payment_id=payment.id,
        payment_reference=payment.payment_reference,
        status=payment.status,
        final_amount=str(final_amount),
    )

    result = CheckoutResult(
        user=user,
        payment=payment,
        plan_name=plan_name,
        base_amount=base_amount,
        discount_amount=discount_amount,
        final_amount=final_amount,
        start_date=now,
        end_date=now + duration,
        coupon_code=coupon_code,
    )
    await _send_confirmation(result, email_service or get_email_service())
    return result


async def _send_confirmation(result: CheckoutResult, service: EmailService) -> None:
    """Email the outcome. The payment is already committed, so failures only log."""
    name = result.user.name or "Member"
    if result.is_free:
        template_name = "membership_free"
        context = {
            "name": name,
            "plan_name": result.plan_name,
            "coupon_code": result.coupon_code or "",
            "start_date": result.start_date.strftime("%B %d, %Y"),
            "end_date": result.end_date.strftime("%B %d, %Y"),
        }
    else:
        template_name = "membership_pending"
        context = {
            "name": name,
            "plan_name": result.plan_name,
            "amount": f"{result.final_amount:,.2f}",
            "payment_reference": result.payment.payment_reference or "",
            "payment_method": result.payment.payment_method.replace("_", " ").title(),
        }

    sent = await service.send_template(to=result.user.email, template_name=template_name, context=context)
    if not sent:
        logger.warning("membership_email_failed", payment_id=result.payment.id, template=template_name)
