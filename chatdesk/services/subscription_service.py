"""Subscription lifecycle: trial at registration, admin CRUD, tenant cancel/upgrade."""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from chatdesk.core.config import settings
from chatdesk.core.errors import ConflictError, ForbiddenError, NotFoundError
from chatdesk.db.enums import SubscriptionStatus
from chatdesk.db.models import Company, Plan, Subscription
from chatdesk.schemas.subscription import SubscriptionCreate, SubscriptionUpdate
from chatdesk.services import plan_service
from chatdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


def _period(start: datetime) -> tuple[datetime, datetime]:
    return start, start + timedelta(days=settings.SUBSCRIPTION_PERIOD_DAYS)


def create_trial(db: Session, company_id: UUID, plan: Plan) -> Subscription:
    """Start a trial on a plan. Caller commits."""
    now = datetime.now(timezone.utc)
    trial_end = now + timedelta(days=settings.TRIAL_DAYS)
    subscription = Subscription(
        company_id=company_id,
        plan_id=plan.id,
        status=SubscriptionStatus.TRIAL.value,
        current_period_start=now,
        current_period_end=trial_end,
        trial_ends_at=trial_end,
    )
    db.add(subscription)
    db.flush()
    return subscription


def _load(db: Session, stmt) -> Subscription | None:
    return db.execute(stmt.options(selectinload(Subscription.plan))).scalar_one_or_none()


def get_subscription(db: Session, subscription_id: UUID) -> Subscription:
    subscription = _load(db, select(Subscription).where(Subscription.id == subscription_id))
    if not subscription:
        raise NotFoundError("Subscription not found")
    return subscription


def get_company_subscription(db: Session, company_id: UUID) -> Subscription:
    subscription = _load(db, select(Subscription).where(Subscription.company_id == company_id))
    if not subscription:
        raise NotFoundError("Subscription not found")
    return subscription


def list_subscriptions(
    db: Session,
    pagination: PaginationParams,
    status: str | None = None,
) -> tuple[list[Subscription], int]:
    stmt = select(Subscription).options(selectinload(Subscription.plan))
    if status:
        stmt = stmt.where(Subscription.status == status)
    return paginate_select(db, stmt.order_by(Subscription.created_at.desc()), pagination)


def create_subscription(db: Session, data: SubscriptionCreate) -> Subscription:
    """Create a company's subscription (one per company)."""
    if not db.get(Company, data.company_id):
        raise NotFoundError("Company not found")
    plan = plan_service.get_plan(db, data.plan_id)
    existing = db.execute(
        select(Subscription.id).where(Subscription.company_id == data.company_id)
    ).first()
    if existing:
        raise ConflictError("Company already has a subscription")

    start, end = _period(datetime.now(timezone.utc))
    subscription = Subscription(
        company_id=data.company_id,
        plan_id=plan.id,
        status=data.status.value,
        current_period_start=start,
        current_period_end=end,
        trial_ends_at=data.trial_ends_at,
    )
    db.add(subscription)
    db.commit()
    return get_subscription(db, subscription.id)


def update_subscription(db: Session, subscription_id: UUID, data: SubscriptionUpdate) -> Subscription:
    """Admin update. Changing the plan starts a fresh billing period."""
    subscription = get_subscription(db, subscription_id)
    changes = data.model_dump(exclude_unset=True)

    plan_id = changes.pop("plan_id", None)
    if plan_id and plan_id != subscription.plan_id:
        plan = plan_service.get_plan(db, plan_id)
        subscription.plan_id = plan.id
        subscription.current_period_start, subscription.current_period_end = _period(
            datetime.now(timezone.utc)
        )
    if changes.get("status") is not None:
        subscription.status = SubscriptionStatus(changes.pop("status")).value
    for field, value in changes.items():
        if field == "cancel_at_period_end" and value is None:
            continue
        setattr(subscription, field, value)

    db.commit()
    db.expire(subscription, ["plan"])
    return get_subscription(db, subscription.id)


def cancel_company_subscription(db: Session, company_id: UUID) -> Subscription:
    subscription = get_company_subscription(db, company_id)
    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.cancel_at_period_end = True
    db.commit()
    logger.info("Subscription cancelled for company %s", company_id)
    return get_company_subscription(db, company_id)


def upgrade_company_subscription(db: Session, company_id: UUID, plan_id: UUID) -> Subscription:
    """
    Move to a more expensive plan. No payment is processed.

    Raises:
        ForbiddenError: Target plan is not more expensive, or inactive
    """
    subscription = get_company_subscription(db, company_id)
    new_plan = plan_service.get_plan(db, plan_id)
    if not new_plan.is_active:
        raise ForbiddenError("Plan is not available")
    current_plan = db.get(Plan, subscription.plan_id)
    if new_plan.price <= current_plan.price:
        raise ForbiddenError("Upgrade requires a plan with a higher price")

    subscription.plan_id = new_plan.id
    subscription.status = SubscriptionStatus.ACTIVE.value
    subscription.trial_ends_at = None
    subscription.cancel_at_period_end = False
    subscription.current_period_start, subscription.current_period_end = _period(
        datetime.now(timezone.utc)
    )
    db.commit()
    db.expire(subscription, ["plan"])
    logger.info("Company %s upgraded to plan %s", company_id, new_plan.slug)
    return get_company_subscription(db, company_id)
