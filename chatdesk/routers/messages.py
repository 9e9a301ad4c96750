"""Message endpoints for agents."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, require_policy
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.chat import (
    MarkReadResponse,
    MessageCreate,
    MessageListResponse,
    MessageRead,
)
from chatdesk.services import message_service
from chatdesk.utils.pagination import PaginationParams, get_pagination, page_payload

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def create_message(
    data: MessageCreate,
    ctx: RequestContext = Depends(require_policy("messages.create")),
    db: Session = Depends(get_db),
):
    """Post a message as the current agent."""
    return message_service.create_message(
        db,
        ctx.company_id,
        data.chat_id,
        data.content,
        sender_id=ctx.user_id,
        message_type=data.message_type,
    )


@router.get("/chat/{chat_id}", response_model=MessageListResponse)
def list_messages(
    chat_id: UUID,
    pagination: PaginationParams = Depends(get_pagination),
    ctx: RequestContext = Depends(require_policy("messages.list")),
    db: Session = Depends(get_db),
):
    items, total = message_service.list_messages(db, chat_id, ctx.company_id, pagination)
    return page_payload(items, total, pagination)


@router.post("/chat/{chat_id}/read", response_model=MarkReadResponse)
def mark_read(
    chat_id: UUID,
    ctx: RequestContext = Depends(require_policy("messages.read")),
    db: Session = Depends(get_db),
):
    marked = message_service.mark_read(db, chat_id, ctx.company_id, ctx.user_id)
    return MarkReadResponse(marked=marked)


@router.get("/{message_id}", response_model=MessageRead)
def get_message(
    message_id: UUID,
    ctx: RequestContext = Depends(require_policy("messages.get")),
    db: Session = Depends(get_db),
):
    return message_service.get_message(db, message_id, ctx.company_id)
