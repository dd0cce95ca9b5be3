"""Coupon endpoint tests."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from conftest import ADMIN_KEY, create_coupon
from kita.coupons.service import MSG_EXPIRED, MSG_INVALID

VALIDATE_URL = "/api/v1/coupons/validate"
ADMIN_URL = "/api/v1/admin/coupons"


@pytest.mark.asyncio
class TestValidateEndpoint:
    async def test_valid_coupon(self, client: AsyncClient, db_session, plan):
        await create_coupon(db_session, "SAVE10")
        response = await client.post(VALIDATE_URL, json={"coupon_code": "save10", "plan_id": plan.id, "quantity": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["base_amount"] == 200.0
        assert data["discount_amount"] == 20.0
        assert data["final_amount"] == 180.0
        assert data["coupon"]["code"] == "SAVE10"
        assert data["coupon"]["discount_type"] == "PERCENTAGE"

    async def test_unknown_and_inactive_look_the_same(self, client: AsyncClient, db_session, plan):
        await create_coupon(db_session, "PAUSED", is_active=False)
        unknown = await client.post(VALIDATE_URL, json={"coupon_code": "NOPE", "plan_id": plan.id, "quantity": 1})
        inactive = await client.post(VALIDATE_URL, json={"coupon_code": "PAUSED", "plan_id": plan.id, "quantity": 1})
        assert unknown.status_code == inactive.status_code == 200
        assert unknown.json()["message"] == inactive.json()["message"] == MSG_INVALID
        assert unknown.json()["is_valid"] is inactive.json()["is_valid"] is False

    async def test_expired_coupon(self, client: AsyncClient, db_session, plan):
        await create_coupon(db_session, "OLD", expires_at=datetime.now(timezone.utc) - timedelta(days=1))
        response = await client.post(VALIDATE_URL, json={"coupon_code": "OLD", "plan_id": plan.id, "quantity": 1})
        assert response.status_code == 200
        assert response.json()["is_valid"] is False
        assert response.json()["message"] == MSG_EXPIRED
        assert response.json()["coupon"] is None

    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post(VALIDATE_URL, json={"coupon_code": "SAVE10"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required fields"

    async def test_missing_code(self, client: AsyncClient, plan):
        response = await client.post(VALIDATE_URL, json={"plan_id": plan.id, "quantity": 1})
        assert response.status_code == 400
        assert response.json()["detail"] == "Coupon code is required"

    async def test_unknown_plan(self, client: AsyncClient, db_session):
        await create_coupon(db_session, "SAVE10")
        response = await client.post(VALIDATE_URL, json={"coupon_code": "SAVE10", "plan_id": "nope", "quantity": 1})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid membership plan"


@pytest.mark.asyncio
class TestAdminCoupons:
    async def test_requires_api_key(self, client: AsyncClient):
        response = await client.post(ADMIN_URL, json={"code": "NEW10", "discount_type": "FREE"})
        assert response.status_code == 401

    async def test_wrong_api_key(self, client: AsyncClient):
        response = await client.post(
            ADMIN_URL, json={"code": "NEW10", "discount_type": "FREE"}, headers={"X-API-Key": "wrong"}
        )
        assert response.status_code == 401

    async def test_create(self, client: AsyncClient):
        response = await client.post(
            ADMIN_URL,
            json={"code": " new10 ", "discount_type": "PERCENTAGE", "discount_value": 10, "max_uses": 50},
            headers={"X-API-Key": ADMIN_KEY},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["code"] == "NEW10"
        assert data["discount_value"] == 10.0
        assert data["max_uses"] == 50
        assert data["used_count"] == 0

    async def test_create_duplicate(self, client: AsyncClient, db_session):
        await create_coupon(db_session, "NEW10")
        response = await client.post(
            ADMIN_URL, json={"code": "new10", "discount_type": "FREE"}, headers={"X-API-Key": ADMIN_KEY}
        )
        assert response.status_code == 409

    async def test_create_percentage_out_of_range(self, client: AsyncClient):
        response = await client.post(
            ADMIN_URL,
            json={"code": "HUGE", "discount_type": "PERCENTAGE", "discount_value": 150},
            headers={"X-API-Key": ADMIN_KEY},
        )
        assert response.status_code == 422

    @pytest.mark.parametrize("code", ["   ", "  ab "])
    async def test_create_rejects_short_code_after_trimming(self, client: AsyncClient, code: str):
        response = await client.post(
            ADMIN_URL,
            json={"code": code, "discount_type": "FREE"},
            headers={"X-API-Key": ADMIN_KEY},
        )
        assert response.status_code == 422

    async def test_admin_validate_unknown_is_404(self, client: AsyncClient):
        response = await client.post(f"{ADMIN_URL}/validate", json={"code": "NOPE"}, headers={"X-API-Key": ADMIN_KEY})
        assert response.status_code == 404

    async def test_admin_validate_unusable_is_400(self, client: AsyncClient, db_session):
        await create_coupon(db_session, "FULL", max_uses=1, used_count=1)
        response = await client.post(f"{ADMIN_URL}/validate", json={"code": "full"}, headers={"X-API-Key": ADMIN_KEY})
        assert response.status_code == 400
        assert response.json()["detail"] == "Coupon usage limit reached"

    async def test_admin_validate_ok(self, client: AsyncClient, db_session):
        await create_coupon(db_session, "SAVE10")
        response = await client.post(f"{ADMIN_URL}/validate", json={"code": "save10"}, headers={"X-API-Key": ADMIN_KEY})
        assert response.status_code == 200
        assert response.json()["code"] == "SAVE10"
