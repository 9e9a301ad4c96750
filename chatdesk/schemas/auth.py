"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from chatdesk.db.enums import SystemRole


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    company_id: UUID
    role: str
    token_version: int


class RequestContext(BaseModel):
    """
    Per-request identity and tenant context.

    Returned by the get_request_context dependency and passed explicitly
    into services; there is no global tenant state.
    """
    user_id: UUID
    company_id: UUID
    role_id: UUID
    role_name: str
    email: str
    permissions: set[str] = Field(default_factory=set)
    subdomain: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role_name == SystemRole.SUPER_ADMIN.value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


class TokenUser(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: str
    company_id: UUID


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: TokenUser


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    company_id: UUID
    company_name: str
    company_slug: str
    role: str
    permissions: list[str]
