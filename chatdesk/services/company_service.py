"""Company (tenant) registration and management."""

import logging
import re
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatdesk.core.config import settings
from chatdesk.core.errors import ConflictError, ForbiddenError, NotFoundError
from chatdesk.core.security import generate_widget_key, hash_password
from chatdesk.db.enums import SystemRole
from chatdesk.db.models import Chat, Company, Department, User
from chatdesk.schemas.auth import TokenResponse
from chatdesk.schemas.company import (
    CompanyCounts,
    CompanyDetail,
    CompanyRegister,
    CompanyUpdate,
    WidgetThemeUpdate,
)
from chatdesk.schemas.subscription import SubscriptionRead
from chatdesk.services import (
    auth_service,
    catalog_service,
    plan_check_service,
    plan_service,
    subscription_service,
)
from chatdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug[:100] or "company"


def register_company(db: Session, data: CompanyRegister) -> tuple[Company, TokenResponse]:
    """
    Public registration.

    Creates the company, its company_admin user, and a trial subscription
    on the default plan, then logs the admin in.

    Raises:
        ConflictError: Slug or email already taken
    """
    slug = data.slug or slugify(data.company_name)
    if db.execute(select(Company.id).where(Company.slug == slug)).first():
        raise ConflictError(f"Company slug '{slug}' already exists")
    if auth_service.find_user_by_email(db, data.email):
        raise ConflictError("Email already registered")

    role = catalog_service.get_system_role(db, SystemRole.COMPANY_ADMIN.value)
    if not role:
        raise NotFoundError("System roles are not configured")
    plan = plan_service.get_plan_by_slug(db, settings.DEFAULT_PLAN_SLUG)

    company = Company(
        name=data.company_name.strip(),
        slug=slug,
        email=data.email.lower(),
        phone=data.phone,
        website=data.website,
        widget_key=generate_widget_key(),
    )
    db.add(company)
    db.flush()

    admin = User(
        company_id=company.id,
        role_id=role.id,
        email=data.email.lower(),
        password_hash=hash_password(data.password),
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
    )
    db.add(admin)
    db.flush()

    subscription_service.create_trial(db, company.id, plan)
    tokens = auth_service.issue_tokens(db, admin, role)
    db.commit()
    logger.info("Registered company %s (%s)", company.id, slug)
    return company, tokens


def get_company(db: Session, company_id: UUID) -> Company:
    company = db.get(Company, company_id)
    if not company:
        raise NotFoundError("Company not found")
    return company


def get_company_scoped(
    db: Session,
    company_id: UUID,
    requester_company_id: UUID | None,
) -> Company:
    """
    Load a company; non-super-admin callers pass their own company id and
    are refused any other.
    """
    company = get_company(db, company_id)
    if requester_company_id is not None and company.id != requester_company_id:
        raise ForbiddenError("Access denied")
    return company


def get_company_detail(db: Session, company_id: UUID) -> CompanyDetail:
    """Company with subscription and resource counts."""
    company = get_company(db, company_id)
    counts = CompanyCounts(
        users=db.execute(
            select(func.count(User.id)).where(User.company_id == company.id)
        ).scalar_one(),
        chats=db.execute(
            select(func.count(Chat.id)).where(Chat.company_id == company.id)
        ).scalar_one(),
        departments=db.execute(
            select(func.count(Department.id)).where(Department.company_id == company.id)
        ).scalar_one(),
    )
    subscription = plan_check_service.get_subscription(db, company.id)
    detail = CompanyDetail.model_validate(company, from_attributes=True)
    if subscription:
        detail.subscription = SubscriptionRead.model_validate(subscription)
    detail.counts = counts
    return detail


def update_company(db: Session, company: Company, data: CompanyUpdate) -> Company:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "email", "is_active"):
            continue
        setattr(company, field, value)
    db.commit()
    db.refresh(company)
    return company


def update_widget_theme(db: Session, company_id: UUID, data: WidgetThemeUpdate) -> Company:
    company = get_company(db, company_id)
    company.widget_theme = (
        data.widget_theme.model_dump(exclude_none=True) if data.widget_theme else None
    )
    db.commit()
    db.refresh(company)
    return company


def get_company_by_widget_key(db: Session, widget_key: str) -> Company:
    """
    Resolve the company behind a widget key.

    Raises:
        NotFoundError: Unknown key
        ForbiddenError: Company inactive
    """
    company = db.execute(
        select(Company).where(Company.widget_key == widget_key)
    ).scalar_one_or_none()
    if not company:
        raise NotFoundError("Company not found")
    if not company.is_active:
        raise ForbiddenError("Company is inactive")
    return company


def list_companies(
    db: Session,
    pagination: PaginationParams,
    search: str | None = None,
) -> tuple[list[Company], int]:
    stmt = select(Company)
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            func.lower(Company.name).like(pattern) | func.lower(Company.slug).like(pattern)
        )
    return paginate_select(db, stmt.order_by(Company.created_at.desc()), pagination)
