"""Analytics endpoints. Require view_reports and the plan's reports feature."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, require_policy
from chatdesk.schemas.analytics import AgentStats, AnalyticsEventList, ChatStats
from chatdesk.schemas.auth import RequestContext
from chatdesk.services import analytics_service
from chatdesk.utils.pagination import PaginationParams, get_pagination, page_payload

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
)


@router.get("/chats", response_model=ChatStats)
def get_chat_stats(
    ctx: RequestContext = Depends(require_policy("analytics.view")),
    db: Session = Depends(get_db),
):
    return analytics_service.get_chat_stats(db, ctx.company_id)


@router.get("/agents", response_model=list[AgentStats])
def get_agent_stats(
    ctx: RequestContext = Depends(require_policy("analytics.view")),
    db: Session = Depends(get_db),
):
    return analytics_service.get_agent_stats(db, ctx.company_id)


@router.get("/events", response_model=AnalyticsEventList)
def list_events(
    event_type: str | None = Query(None),
    pagination: PaginationParams = Depends(get_pagination),
    ctx: RequestContext = Depends(require_policy("analytics.view")),
    db: Session = Depends(get_db),
):
    items, total = analytics_service.list_events(
        db, ctx.company_id, pagination, event_type=event_type
    )
    return page_payload(items, total, pagination)
