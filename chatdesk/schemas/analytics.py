"""Analytics and platform admin response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DepartmentChatCount(BaseModel):
    department_id: UUID | None
    department_name: str | None
    count: int


class ChatStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_department: list[DepartmentChatCount] = Field(default_factory=list)
    avg_first_response_seconds: float | None = None


class AgentStats(BaseModel):
    agent_id: UUID
    agent_name: str
    assigned: int
    closed: int
    avg_rating: float | None = None


class AnalyticsEventRead(BaseModel):
    id: UUID
    company_id: UUID
    user_id: UUID | None
    event_type: str
    event_data: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AnalyticsEventList(BaseModel):
    items: list[AnalyticsEventRead]
    total: int
    page: int
    per_page: int
    pages: int


class PlatformStats(BaseModel):
    companies: int
    active_companies: int
    users: int
    chats: int
    active_subscriptions: int
    subscriptions_by_plan: dict[str, int] = Field(default_factory=dict)
