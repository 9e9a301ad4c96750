"""User-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """Request schema for creating a company user (agent, manager, admin)."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role_id: UUID
    phone: str | None = Field(None, max_length=50)
    avatar: str | None = Field(None, max_length=500)
    department_ids: list[UUID] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """Request schema for updating a user (partial)."""
    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    role_id: UUID | None = None
    phone: str | None = Field(None, max_length=50)
    avatar: str | None = Field(None, max_length=500)
    is_active: bool | None = None
    department_ids: list[UUID] | None = None


class UserRead(BaseModel):
    """Response schema for reading a user."""

    id: UUID
    company_id: UUID
    role_id: UUID
    role_name: str | None = None
    email: str
    first_name: str
    last_name: str
    phone: str | None
    avatar: str | None
    is_active: bool
    is_email_verified: bool
    last_login_at: datetime | None
    created_at: datetime
    department_ids: list[UUID] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    items: list[UserRead]
    total: int
    page: int
    per_page: int
    pages: int
