"""Platform administration endpoints (super_admin only)."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, require_policy
from chatdesk.db.enums import SubscriptionStatus
from chatdesk.schemas.analytics import PlatformStats
from chatdesk.schemas.company import CompanyListResponse
from chatdesk.schemas.subscription import SubscriptionListResponse
from chatdesk.schemas.user import UserListResponse
from chatdesk.services import admin_service, company_service, subscription_service, user_service
from chatdesk.utils.pagination import PaginationParams, get_pagination, page_payload

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_policy("admin"))],
)


@router.get("/stats", response_model=PlatformStats)
def get_stats(db: Session = Depends(get_db)):
    return admin_service.get_platform_stats(db)


@router.get("/companies", response_model=CompanyListResponse)
def list_companies(
    search: str | None = Query(None, max_length=100),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    items, total = company_service.list_companies(db, pagination, search)
    return page_payload(items, total, pagination)


@router.get("/users", response_model=UserListResponse)
def list_users(
    company_id: UUID | None = Query(None),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    users, total = admin_service.list_all_users(db, pagination, company_id)
    return page_payload([user_service.to_read(u) for u in users], total, pagination)


@router.get("/subscriptions", response_model=SubscriptionListResponse)
def list_subscriptions(
    status_filter: SubscriptionStatus | None = Query(None, alias="status"),
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    items, total = subscription_service.list_subscriptions(
        db, pagination, status_filter.value if status_filter else None
    )
    return page_payload(items, total, pagination)
