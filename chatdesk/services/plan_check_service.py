"""
Plan enforcement: subscription entitlement, feature flags, and numeric limits.

Limit checks are advisory with respect to concurrency: the count and the
subsequent insert are not one transaction, so two concurrent creates at
max-1 can both pass (soft limit).
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatdesk.core.errors import ForbiddenError
from chatdesk.db.enums import LimitType, SubscriptionStatus, SystemRole
from chatdesk.db.models import Department, Plan, Role, Subscription, User
from chatdesk.schemas.subscription import LimitUsage, PlanLimits

logger = logging.getLogger(__name__)

SUBSCRIPTION_REQUIRED = "Active subscription required"


def is_entitled(subscription: Subscription | None, now: datetime | None = None) -> bool:
    """Active subscriptions, and trials that have not yet ended, grant access."""
    if subscription is None:
        return False
    if subscription.status == SubscriptionStatus.ACTIVE.value:
        return True
    if subscription.status == SubscriptionStatus.TRIAL.value:
        if subscription.trial_ends_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return subscription.trial_ends_at > now
    return False


def get_subscription(db: Session, company_id: UUID) -> Subscription | None:
    return db.execute(
        select(Subscription).where(Subscription.company_id == company_id)
    ).scalar_one_or_none()


def get_entitled_subscription(db: Session, company_id: UUID) -> Subscription:
    """Return the company's subscription, raising when it grants no access."""
    subscription = get_subscription(db, company_id)
    if not is_entitled(subscription):
        raise ForbiddenError(SUBSCRIPTION_REQUIRED)
    return subscription


def check_feature_access(db: Session, company_id: UUID, feature: str) -> bool:
    """
    Whether the company's plan includes a feature.

    Raises:
        ForbiddenError: No subscription in an entitled state
    """
    subscription = get_entitled_subscription(db, company_id)
    plan = db.get(Plan, subscription.plan_id)
    return feature in (plan.allowed_features or [])


def has_feature(db: Session, company_id: UUID, feature: str) -> bool:
    """Non-raising variant of check_feature_access."""
    subscription = get_subscription(db, company_id)
    if not is_entitled(subscription):
        return False
    plan = db.get(Plan, subscription.plan_id)
    return feature in (plan.allowed_features or [])


def require_feature(db: Session, company_id: UUID, feature: str) -> None:
    if not check_feature_access(db, company_id, feature):
        raise ForbiddenError(f"Your plan does not include the '{feature}' feature")


def count_resources(db: Session, company_id: UUID, limit_type: LimitType) -> int:
    """Count active resources of a kind for a company."""
    if limit_type == LimitType.USERS:
        stmt = select(func.count(User.id)).where(
            User.company_id == company_id,
            User.is_active.is_(True),
        )
    elif limit_type == LimitType.AGENTS:
        stmt = (
            select(func.count(User.id))
            .join(Role, Role.id == User.role_id)
            .where(
                User.company_id == company_id,
                User.is_active.is_(True),
                Role.name == SystemRole.AGENT.value,
            )
        )
    elif limit_type == LimitType.DEPARTMENTS:
        stmt = select(func.count(Department.id)).where(
            Department.company_id == company_id,
            Department.is_active.is_(True),
        )
    else:
        raise ValueError(f"Unknown limit type: {limit_type}")
    return db.execute(stmt).scalar_one()


def _plan_max(plan: Plan, limit_type: LimitType) -> int:
    return {
        LimitType.USERS: plan.max_users,
        LimitType.AGENTS: plan.max_agents,
        LimitType.DEPARTMENTS: plan.max_departments,
    }[limit_type]


def check_limit(db: Session, company_id: UUID, limit_type: LimitType | str) -> None:
    """
    Refuse a create that would exceed the plan's ceiling.

    Raises:
        ForbiddenError: No entitled subscription, or current >= max
    """
    limit_type = LimitType(limit_type)
    subscription = get_entitled_subscription(db, company_id)
    plan = db.get(Plan, subscription.plan_id)

    current = count_resources(db, company_id, limit_type)
    maximum = _plan_max(plan, limit_type)
    if current >= maximum:
        logger.info(
            "Plan limit reached: company=%s type=%s current=%d max=%d",
            company_id, limit_type.value, current, maximum,
        )
        raise ForbiddenError(
            f"Plan limit reached for {limit_type.value}. Current: {current}/{maximum}",
            current=current,
            max=maximum,
        )


def get_plan_limits(db: Session, company_id: UUID) -> PlanLimits:
    subscription = get_entitled_subscription(db, company_id)
    plan = db.get(Plan, subscription.plan_id)

    def usage(limit_type: LimitType) -> LimitUsage:
        current = count_resources(db, company_id, limit_type)
        maximum = _plan_max(plan, limit_type)
        return LimitUsage(current=current, max=maximum, remaining=max(maximum - current, 0))

    return PlanLimits(
        plan_name=plan.name,
        plan_slug=plan.slug,
        status=subscription.status,
        users=usage(LimitType.USERS),
        agents=usage(LimitType.AGENTS),
        departments=usage(LimitType.DEPARTMENTS),
        features=list(plan.allowed_features or []),
    )
