"""Subscription endpoints: tenant self-service under /me, super-admin CRUD otherwise."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_request_context, require_policy
from chatdesk.db.enums import SubscriptionStatus
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.subscription import (
    PlanLimits,
    SubscriptionCreate,
    SubscriptionListResponse,
    SubscriptionRead,
    SubscriptionUpdate,
    UpgradeRequest,
)
from chatdesk.services import plan_check_service, subscription_service
from chatdesk.utils.pagination import PaginationParams, get_pagination, page_payload

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


# =============================================================================
# Tenant self-service
# =============================================================================


@router.get("/me", response_model=SubscriptionRead)
def get_my_subscription(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return subscription_service.get_company_subscription(db, ctx.company_id)


@router.get("/me/limits", response_model=PlanLimits)
def get_my_limits(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Current usage against the plan's limits."""
    return plan_check_service.get_plan_limits(db, ctx.company_id)


@router.post("/me/cancel", response_model=SubscriptionRead)
def cancel_my_subscription(
    ctx: RequestContext = Depends(require_policy("subscriptions.cancel")),
    db: Session = Depends(get_db),
):
    return subscription_service.cancel_company_subscription(db, ctx.company_id)


@router.post("/me/upgrade", response_model=SubscriptionRead)
def upgrade_my_subscription(
    data: UpgradeRequest,
    ctx: RequestContext = Depends(require_policy("subscriptions.upgrade")),
    db: Session = Depends(get_db),
):
    return subscription_service.upgrade_company_subscription(db, ctx.company_id, data.plan_id)


# =============================================================================
# Platform administration
# =============================================================================


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
def create_subscription(
    data: SubscriptionCreate,
    ctx: RequestContext = Depends(require_policy("subscriptions.manage")),
    db: Session = Depends(get_db),
):
    return subscription_service.create_subscription(db, data)


@router.get("", response_model=SubscriptionListResponse)
def list_subscriptions(
    status_filter: SubscriptionStatus | None = Query(None, alias="status"),
    pagination: PaginationParams = Depends(get_pagination),
    ctx: RequestContext = Depends(require_policy("subscriptions.manage")),
    db: Session = Depends(get_db),
):
    items, total = subscription_service.list_subscriptions(
        db, pagination, status_filter.value if status_filter else None
    )
    return page_payload(items, total, pagination)


@router.get("/{subscription_id}", response_model=SubscriptionRead)
def get_subscription(
    subscription_id: UUID,
    ctx: RequestContext = Depends(require_policy("subscriptions.manage")),
    db: Session = Depends(get_db),
):
    return subscription_service.get_subscription(db, subscription_id)


@router.patch("/{subscription_id}", response_model=SubscriptionRead)
def update_subscription(
    subscription_id: UUID,
    data: SubscriptionUpdate,
    ctx: RequestContext = Depends(require_policy("subscriptions.manage")),
    db: Session = Depends(get_db),
):
    return subscription_service.update_subscription(db, subscription_id, data)
