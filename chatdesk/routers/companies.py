"""Company (tenant) endpoints: public registration and self-service management."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_request_context, require_policy
from chatdesk.core.rate_limit import AUTH_LIMIT, limiter
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.company import (
    CompanyDetail,
    CompanyRead,
    CompanyRegister,
    CompanyRegistered,
    CompanyUpdate,
    WidgetThemeUpdate,
)
from chatdesk.services import company_service

router = APIRouter(prefix="/companies", tags=["companies"])


def _scope(ctx: RequestContext) -> UUID | None:
    return None if ctx.is_super_admin else ctx.company_id


@router.post("", response_model=CompanyRegistered, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
def register_company(
    request: Request,
    data: CompanyRegister,
    db: Session = Depends(get_db),
):
    """Create a company, its admin user and a trial subscription."""
    company, tokens = company_service.register_company(db, data)
    return CompanyRegistered(
        **tokens.model_dump(),
        company=CompanyRead.model_validate(company),
    )


@router.get("/me", response_model=CompanyDetail)
def get_my_company(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return company_service.get_company_detail(db, ctx.company_id)


@router.patch("/me/widget-theme", response_model=CompanyRead)
def update_widget_theme(
    data: WidgetThemeUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return company_service.update_widget_theme(db, ctx.company_id, data)


@router.get("/{company_id}", response_model=CompanyDetail)
def get_company(
    company_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Super admins see any company; everyone else only their own."""
    company = company_service.get_company_scoped(db, company_id, _scope(ctx))
    return company_service.get_company_detail(db, company.id)


@router.patch("/{company_id}", response_model=CompanyRead)
def update_company(
    company_id: UUID,
    data: CompanyUpdate,
    ctx: RequestContext = Depends(require_policy("companies.update")),
    db: Session = Depends(get_db),
):
    company = company_service.get_company_scoped(db, company_id, _scope(ctx))
    return company_service.update_company(db, company, data)
