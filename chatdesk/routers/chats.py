"""Chat endpoints: public widget creation, listing, queue, updates and assignment."""

from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from chatdesk.core.deps import get_db, get_presence_store, require_policy
from chatdesk.core.errors import BadRequestError
from chatdesk.core.presence import PresenceStore
from chatdesk.db.enums import ChatStatus
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.chat import (
    AssignRequest,
    ChatCreate,
    ChatListResponse,
    ChatRead,
    ChatUpdate,
)
from chatdesk.services import chat_service, company_service
from chatdesk.utils.pagination import PaginationParams, get_pagination, page_payload

router = APIRouter(prefix="/chats", tags=["chats"])


@router.post("", response_model=ChatRead, status_code=status.HTTP_201_CREATED)
async def create_chat(
    request: Request,
    data: ChatCreate,
    x_widget_key: str | None = Header(None),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
):
    """
    Open a chat from the embedded widget.

    Public: the widget key comes from the X-Widget-Key header or the body.
    """
    widget_key = x_widget_key or data.widget_key
    if not widget_key:
        raise BadRequestError("Widget key required")
    company = await run_in_threadpool(company_service.get_company_by_widget_key, db, widget_key)
    return await chat_service.create_chat(
        db,
        presence,
        data,
        company.id,
        visitor_ip=request.client.host if request.client else None,
        visitor_user_agent=request.headers.get("user-agent"),
    )


@router.get("", response_model=ChatListResponse)
def list_chats(
    status_filter: ChatStatus | None = Query(None, alias="status"),
    agent_id: UUID | None = Query(None),
    pagination: PaginationParams = Depends(get_pagination),
    ctx: RequestContext = Depends(require_policy("chats.list")),
    db: Session = Depends(get_db),
):
    items, total = chat_service.list_chats(
        db, ctx.company_id, pagination, status=status_filter, agent_id=agent_id
    )
    return page_payload(items, total, pagination)


@router.get("/queue", response_model=list[ChatRead])
async def get_queue(
    ctx: RequestContext = Depends(require_policy("chats.queue")),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
):
    """Pending chats waiting for an agent, oldest first."""
    return await chat_service.get_queue(db, presence, ctx.company_id)


@router.get("/{chat_id}", response_model=ChatRead)
def get_chat(
    chat_id: UUID,
    ctx: RequestContext = Depends(require_policy("chats.get")),
    db: Session = Depends(get_db),
):
    return chat_service.get_chat_read(db, chat_id, ctx.company_id)


@router.patch("/{chat_id}", response_model=ChatRead)
async def update_chat(
    chat_id: UUID,
    data: ChatUpdate,
    ctx: RequestContext = Depends(require_policy("chats.update")),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
):
    return await chat_service.update_chat(
        db, presence, chat_id, data, ctx.company_id, user_id=ctx.user_id
    )


@router.post("/{chat_id}/assign", response_model=ChatRead)
async def assign_chat(
    chat_id: UUID,
    data: AssignRequest,
    ctx: RequestContext = Depends(require_policy("chats.assign")),
    db: Session = Depends(get_db),
    presence: PresenceStore = Depends(get_presence_store),
):
    """Assign the chat to an agent, replacing any active assignment."""
    return await chat_service.assign_chat(
        db, presence, chat_id, data.agent_id, ctx.company_id, assigned_by=ctx.user_id
    )
