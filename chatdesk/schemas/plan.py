"""Plan Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from chatdesk.db.enums import Feature


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    description: str | None = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    billing_cycle: str = Field("monthly", max_length=20)
    max_users: int = Field(..., ge=0)
    max_agents: int = Field(..., ge=0)
    max_departments: int = Field(..., ge=0)
    allowed_features: list[Feature] = Field(default_factory=list)
    chat_history_retention_days: int = Field(30, ge=1)
    is_active: bool = True


class PlanUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    price: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    billing_cycle: str | None = Field(None, max_length=20)
    max_users: int | None = Field(None, ge=0)
    max_agents: int | None = Field(None, ge=0)
    max_departments: int | None = Field(None, ge=0)
    allowed_features: list[Feature] | None = None
    chat_history_retention_days: int | None = Field(None, ge=1)
    is_active: bool | None = None


class PlanRead(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str | None
    price: Decimal
    currency: str
    billing_cycle: str
    max_users: int
    max_agents: int
    max_departments: int
    allowed_features: list[str]
    chat_history_retention_days: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
