"""Subscription and plan-limit Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from chatdesk.db.enums import SubscriptionStatus
from chatdesk.schemas.plan import PlanRead


class SubscriptionCreate(BaseModel):
    company_id: UUID
    plan_id: UUID
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    trial_ends_at: datetime | None = None


class SubscriptionUpdate(BaseModel):
    plan_id: UUID | None = None
    status: SubscriptionStatus | None = None
    trial_ends_at: datetime | None = None
    cancel_at_period_end: bool | None = None


class UpgradeRequest(BaseModel):
    plan_id: UUID


class SubscriptionRead(BaseModel):
    id: UUID
    company_id: UUID
    plan_id: UUID
    status: str
    current_period_start: datetime
    current_period_end: datetime
    trial_ends_at: datetime | None
    cancel_at_period_end: bool
    created_at: datetime
    plan: PlanRead | None = None

    model_config = {"from_attributes": True}


class LimitUsage(BaseModel):
    current: int
    max: int
    remaining: int


class PlanLimits(BaseModel):
    plan_name: str
    plan_slug: str
    status: str
    users: LimitUsage
    agents: LimitUsage
    departments: LimitUsage
    features: list[str] = Field(default_factory=list)


class SubscriptionListResponse(BaseModel):
    items: list[SubscriptionRead]
    total: int
    page: int
    per_page: int
    pages: int
