"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Callable, Generator
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from chatdesk.core.errors import ForbiddenError, UnauthorizedError
from chatdesk.core.policies import evaluate_policy, get_policy, require_role
from chatdesk.core.presence import PresenceStore, presence_store
from chatdesk.core.tenant import resolve_tenant
from chatdesk.db.session import SessionLocal
from chatdesk.schemas.auth import RequestContext
from chatdesk.services import auth_service, permission_service


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_presence_store() -> PresenceStore:
    return presence_store


def get_session_factory() -> sessionmaker:
    """Session factory for long-lived handlers (WebSocket) that open short sessions."""
    return SessionLocal


def get_bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_request_context(
    request: Request,
    db: Session = Depends(get_db),
) -> RequestContext:
    """
    Get full request context: user, company, role, permissions, tenant.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        UnauthorizedError: Not authenticated
        ForbiddenError: Subdomain names a different company than the token
        NotFoundError: Subdomain names no active company
    """
    token = get_bearer_token(request)
    if not token:
        raise UnauthorizedError("Not authenticated")

    user, role = auth_service.authenticate_token(db, token)
    is_super_admin = role.is_system and role.name == "super_admin"

    tenant = resolve_tenant(
        db,
        request.headers,
        session_company_id=None if is_super_admin else user.company_id,
    )

    return RequestContext(
        user_id=user.id,
        company_id=user.company_id,
        role_id=role.id,
        role_name=role.name,
        email=user.email,
        permissions=permission_service.get_role_permissions(db, role.id),
        subdomain=tenant.subdomain if tenant else None,
    )


def require_policy(key: str) -> Callable[..., RequestContext]:
    """
    Dependency factory applying a route policy from ROUTE_POLICIES.

    Usage:
        @router.post("/{chat_id}/assign")
        async def assign(ctx: RequestContext = Depends(require_policy("chats.assign"))):
            ...
    """
    policy = get_policy(key)

    def dependency(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        evaluate_policy(policy, ctx.role_name, ctx.permissions)
        return ctx

    return dependency


def require_roles(allowed_roles: list[str]) -> Callable[..., RequestContext]:
    """Dependency factory for role-based authorization."""
    allowed = frozenset(allowed_roles)

    def dependency(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        require_role(ctx.role_name, allowed)
        return ctx

    return dependency


def ensure_same_company(ctx: RequestContext, company_id: UUID) -> None:
    """Reject access to another company's resource unless super admin."""
    if company_id != ctx.company_id and not ctx.is_super_admin:
        raise ForbiddenError("Access denied to this company")
