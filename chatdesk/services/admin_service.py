"""Platform-wide reads for super admins."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from chatdesk.db.enums import ENTITLED_SUBSCRIPTION_STATUSES
from chatdesk.db.models import Chat, Company, Plan, Subscription, User
from chatdesk.schemas.analytics import PlatformStats
from chatdesk.utils.pagination import PaginationParams, paginate_select


def _count(db: Session, stmt) -> int:
    return db.execute(stmt).scalar_one()


def get_platform_stats(db: Session) -> PlatformStats:
    by_plan = db.execute(
        select(Plan.slug, func.count(Subscription.id))
        .join(Subscription, Subscription.plan_id == Plan.id)
        .group_by(Plan.slug)
    ).all()
    return PlatformStats(
        companies=_count(db, select(func.count(Company.id))),
        active_companies=_count(
            db, select(func.count(Company.id)).where(Company.is_active.is_(True))
        ),
        users=_count(db, select(func.count(User.id))),
        chats=_count(db, select(func.count(Chat.id))),
        active_subscriptions=_count(
            db,
            select(func.count(Subscription.id)).where(
                Subscription.status.in_(ENTITLED_SUBSCRIPTION_STATUSES)
            ),
        ),
        subscriptions_by_plan={slug: count for slug, count in by_plan},
    )


def list_all_users(
    db: Session,
    pagination: PaginationParams,
    company_id: UUID | None = None,
) -> tuple[list[User], int]:
    """Users across every company, optionally narrowed to one."""
    stmt = select(User).options(selectinload(User.role), selectinload(User.user_departments))
    if company_id:
        stmt = stmt.where(User.company_id == company_id)
    return paginate_select(db, stmt.order_by(User.created_at.desc()), pagination)
