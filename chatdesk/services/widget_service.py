"""Public widget: configuration lookup and online agent listing."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from chatdesk.core.presence import PresenceStore, online_key
from chatdesk.db.enums import SystemRole
from chatdesk.db.models import Role, User
from chatdesk.schemas.widget import DEFAULT_WIDGET_THEME, OnlineAgent, WidgetConfig
from chatdesk.services import company_service, plan_check_service

logger = logging.getLogger(__name__)


def get_widget_config(db: Session, widget_key: str) -> WidgetConfig:
    """
    Resolve a widget key to its embed configuration.

    Raises:
        NotFoundError: Unknown key
        ForbiddenError: Company inactive or subscription not entitled
    """
    company = company_service.get_company_by_widget_key(db, widget_key)
    plan_check_service.get_entitled_subscription(db, company.id)
    return WidgetConfig(
        company_id=company.id,
        widget_key=company.widget_key,
        theme=company.widget_theme or dict(DEFAULT_WIDGET_THEME),
        is_active=company.is_active,
    )



def _active_agents(db: Session, company_id: UUID, agent_ids: list[UUID]) -> list[OnlineAgent]:
    rows = db.execute(
        select(User)
        .join(Role, Role.id == User.role_id)
        .where(
            User.id.in_(agent_ids),
            User.company_id == company_id,
            User.is_active.is_(True),
            Role.name == SystemRole.AGENT.value,
        )
        .order_by(User.first_name, User.last_name)
    ).scalars().all()
    return [
        OnlineAgent(id=u.id, first_name=u.first_name, last_name=u.last_name, avatar=u.avatar)
        for u in rows
    ]


async def get_online_agents(
    db: Session,
    presence: PresenceStore,
    widget_key: str,
) -> list[OnlineAgent]:
    """Agents present in the company's online set. Empty when the store is down."""
    company = await run_in_threadpool(company_service.get_company_by_widget_key, db, widget_key)
    members = await presence.smembers(online_key(company.id))

    agent_ids: list[UUID] = []
    for member in members:
        try:
            agent_ids.append(UUID(member))
        except ValueError:
            logger.debug("Ignoring malformed presence member %r", member)
    if not agent_ids:
        return []
    return await run_in_threadpool(_active_agents, db, company.id, agent_ids)
