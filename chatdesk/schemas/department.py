"""Department Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)


class DepartmentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class DepartmentRead(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    description: str | None
    is_active: bool
    created_at: datetime
    member_count: int = 0
    chat_count: int = 0
