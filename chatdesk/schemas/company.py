"""Company (tenant) Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from chatdesk.schemas.auth import TokenResponse
from chatdesk.schemas.subscription import SubscriptionRead


SLUG_PATTERN = r"^[a-z0-9](?:[a-z0-9-]{0,98}[a-z0-9])?$"


class CompanyRegister(BaseModel):
    """Public registration: creates the company, its admin, and a trial."""
    company_name: str = Field(..., min_length=1, max_length=255)
    slug: str | None = Field(None, pattern=SLUG_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=50)
    website: str | None = Field(None, max_length=255)


class CompanyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    website: str | None = Field(None, max_length=255)
    logo: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class WidgetTheme(BaseModel):
    primaryColor: str | None = Field(None, max_length=20)
    position: Literal["bottom-left", "bottom-right", "top-left", "top-right"] | None = None
    logo: str | None = Field(None, max_length=500)
    welcomeMessage: str | None = Field(None, max_length=500)


class WidgetThemeUpdate(BaseModel):
    widget_theme: WidgetTheme | None = None


class CompanyRead(BaseModel):
    id: UUID
    name: str
    slug: str
    email: str
    phone: str | None
    website: str | None
    logo: str | None
    widget_key: str
    widget_theme: dict | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CompanyCounts(BaseModel):
    users: int = 0
    chats: int = 0
    departments: int = 0


class CompanyDetail(CompanyRead):
    """Company with subscription and resource counts."""
    subscription: SubscriptionRead | None = None
    counts: CompanyCounts = Field(default_factory=CompanyCounts)


class CompanyRegistered(TokenResponse):
    """Registration result: the new company plus the admin's tokens."""
    company: CompanyRead


class CompanyListResponse(BaseModel):
    items: list[CompanyRead]
    total: int
    page: int
    per_page: int
    pages: int
