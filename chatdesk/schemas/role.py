"""Role and permission Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PermissionRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    category: str

    model_config = {"from_attributes": True}


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    permission_ids: list[UUID] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    permission_ids: list[UUID] | None = None


class RoleRead(BaseModel):
    id: UUID
    company_id: UUID | None
    name: str
    description: str | None
    is_system: bool
    created_at: datetime
    permissions: list[PermissionRead] = Field(default_factory=list)
