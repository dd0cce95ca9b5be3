"""Response schemas for the public website API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PublicPlan(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    price: float
    duration_days: int


class PublicPlanList(BaseModel):
    success: bool = True
    data: list[PublicPlan]
