"""Authentication endpoints: role-segregated login, refresh, logout, me."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_request_context
from chatdesk.core.rate_limit import AUTH_LIMIT, limiter
from chatdesk.core.tenant import subdomain_from_headers
from chatdesk.db.models import User
from chatdesk.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    MeResponse,
    RefreshRequest,
    RequestContext,
    TokenResponse,
)
from chatdesk.services import auth_service, company_service

router = APIRouter(tags=["auth"])


@router.post("/companies/auth/login", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def company_login(
    request: Request,
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """Login for company users. Super admins are refused here."""
    return auth_service.login(
        db,
        data.email,
        data.password,
        surface=auth_service.COMPANY_LOGIN,
        subdomain=subdomain_from_headers(request.headers),
    )


@router.post("/admin/auth/login", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def admin_login(
    request: Request,
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """Login for platform super admins only."""
    return auth_service.login(db, data.email, data.password, surface=auth_service.ADMIN_LOGIN)


@router.post("/auth/refresh", response_model=TokenResponse)
@limiter.limit(AUTH_LIMIT)
def refresh(
    request: Request,
    data: RefreshRequest,
    db: Session = Depends(get_db),
):
    """Rotate a refresh token."""
    return auth_service.refresh(db, data.refresh_token)


@router.post("/auth/logout")
def logout(
    data: LogoutRequest | None = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Revoke the given refresh token, or every session when none is given."""
    revoked = auth_service.logout(db, ctx.user_id, data.refresh_token if data else None)
    return {"success": True, "revoked": revoked}


@router.get("/auth/me", response_model=MeResponse)
def me(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    user = db.get(User, ctx.user_id)
    company = company_service.get_company(db, ctx.company_id)
    return MeResponse(
        user_id=ctx.user_id,
        email=ctx.email,
        first_name=user.first_name,
        last_name=user.last_name,
        company_id=company.id,
        company_name=company.name,
        company_slug=company.slug,
        role=ctx.role_name,
        permissions=sorted(ctx.permissions),
    )
