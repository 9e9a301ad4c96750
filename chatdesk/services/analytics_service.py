"""
Analytics: event tracking and chat/agent reports.

Tracking is best-effort and gated by the plan's 'reports' feature; reads
require the feature and raise ForbiddenError without it.
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatdesk.db.enums import ChatStatus, Feature, SenderType
from chatdesk.db.models import AnalyticsEvent, Chat, ChatAssignment, Department, Message, User
from chatdesk.schemas.analytics import AgentStats, ChatStats, DepartmentChatCount
from chatdesk.services import plan_check_service
from chatdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


def track_event(
    db: Session,
    company_id: UUID,
    event_type: str,
    user_id: UUID | None = None,
    data: dict | None = None,
) -> AnalyticsEvent | None:
    """Append an event and commit. No-op when the plan lacks reports."""
    if not plan_check_service.has_feature(db, company_id, Feature.REPORTS.value):
        logger.debug("Skipping %s event: reports not in plan", event_type)
        return None
    event = AnalyticsEvent(
        company_id=company_id,
        user_id=user_id,
        event_type=event_type,
        event_data=data,
    )
    db.add(event)
    db.commit()
    return event


def _require_reports(db: Session, company_id: UUID) -> None:
    plan_check_service.require_feature(db, company_id, Feature.REPORTS.value)


def get_chat_stats(db: Session, company_id: UUID) -> ChatStats:
    _require_reports(db, company_id)

    by_status = {status.value: 0 for status in ChatStatus}
    for status, count in db.execute(
        select(Chat.status, func.count(Chat.id))
        .where(Chat.company_id == company_id)
        .group_by(Chat.status)
    ).all():
        by_status[status] = count

    by_department = [
        DepartmentChatCount(department_id=dept_id, department_name=name, count=count)
        for dept_id, name, count in db.execute(
            select(Chat.department_id, Department.name, func.count(Chat.id))
            .outerjoin(Department, Department.id == Chat.department_id)
            .where(Chat.company_id == company_id)
            .group_by(Chat.department_id, Department.name)
            .order_by(func.count(Chat.id).desc())
        ).all()
    ]

    first_reply = (
        select(Message.chat_id, func.min(Message.created_at).label("first_at"))
        .where(Message.sender_type == SenderType.AGENT.value)
        .group_by(Message.chat_id)
        .subquery()
    )
    rows = db.execute(
        select(Chat.created_at, first_reply.c.first_at)
        .join(first_reply, first_reply.c.chat_id == Chat.id)
        .where(Chat.company_id == company_id)
    ).all()
    waits = [
        (first_at - created_at).total_seconds()
        for created_at, first_at in rows
        if first_at is not None
    ]
    avg_first_response = round(sum(waits) / len(waits), 2) if waits else None

    return ChatStats(
        total=sum(by_status.values()),
        by_status=by_status,
        by_department=by_department,
        avg_first_response_seconds=avg_first_response,
    )


def get_agent_stats(db: Session, company_id: UUID) -> list[AgentStats]:
    _require_reports(db, company_id)

    rows = db.execute(
        select(
            User.id,
            User.first_name,
            User.last_name,
            func.count(ChatAssignment.id),
        )
        .join(ChatAssignment, ChatAssignment.agent_id == User.id)
        .where(User.company_id == company_id)
        .group_by(User.id, User.first_name, User.last_name)
    ).all()

    stats = []
    for agent_id, first_name, last_name, assigned in rows:
        closed, avg_rating = db.execute(
            select(func.count(Chat.id), func.avg(Chat.rating))
            .join(ChatAssignment, ChatAssignment.chat_id == Chat.id)
            .where(
                ChatAssignment.agent_id == agent_id,
                ChatAssignment.is_active.is_(True),
                Chat.company_id == company_id,
                Chat.status == ChatStatus.CLOSED.value,
            )
        ).one()
        stats.append(
            AgentStats(
                agent_id=agent_id,
                agent_name=f"{first_name} {last_name}".strip(),
                assigned=assigned,
                closed=closed,
                avg_rating=round(float(avg_rating), 2) if avg_rating is not None else None,
            )
        )
    return sorted(stats, key=lambda s: s.assigned, reverse=True)


def list_events(
    db: Session,
    company_id: UUID,
    pagination: PaginationParams,
    event_type: str | None = None,
) -> tuple[list[AnalyticsEvent], int]:
    _require_reports(db, company_id)
    stmt = select(AnalyticsEvent).where(AnalyticsEvent.company_id == company_id)
    if event_type:
        stmt = stmt.where(AnalyticsEvent.event_type == event_type)
    return paginate_select(db, stmt.order_by(AnalyticsEvent.created_at.desc()), pagination)
