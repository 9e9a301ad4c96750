"""Chat messages: create, list, read receipts."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from chatdesk.core.errors import ForbiddenError, NotFoundError
from chatdesk.db.enums import DEFAULT_MESSAGE_TYPE, AnalyticsEventType, SenderType
from chatdesk.db.models import Chat, Message, User
from chatdesk.services import analytics_service, chat_service
from chatdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


def create_message(
    db: Session,
    company_id: UUID,
    chat_id: UUID,
    content: str,
    sender_id: UUID | None = None,
    message_type: str | None = None,
) -> Message:
    """
    Persist a message in a company's chat.

    The sender is an agent when sender_id is given, otherwise the visitor.

    Raises:
        NotFoundError / ForbiddenError: Chat missing or another company's
        ForbiddenError: Agent sender not a user of the company
    """
    chat = chat_service.get_chat(db, chat_id, company_id)

    sender_type = SenderType.VISITOR.value
    if sender_id is not None:
        sender = db.get(User, sender_id)
        if not sender or sender.company_id != company_id:
            raise ForbiddenError("Sender does not belong to this company")
        sender_type = SenderType.AGENT.value

    message = Message(
        chat_id=chat.id,
        sender_type=sender_type,
        sender_id=sender_id,
        content=content,
        message_type=message_type or DEFAULT_MESSAGE_TYPE,
    )
    db.add(message)
    chat.updated_at = datetime.now(timezone.utc)
    db.commit()

    analytics_service.track_event(
        db, company_id, AnalyticsEventType.MESSAGE_SENT.value,
        user_id=sender_id, data={"chat_id": str(chat.id), "sender_type": sender_type},
    )
    return message


def list_messages(
    db: Session,
    chat_id: UUID,
    company_id: UUID,
    pagination: PaginationParams,
) -> tuple[list[Message], int]:
    """Messages in chronological order."""
    chat_service.get_chat(db, chat_id, company_id)
    stmt = (
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.created_at.asc(), Message.id)
    )
    return paginate_select(db, stmt, pagination)


def get_message(db: Session, message_id: UUID, company_id: UUID) -> Message:
    message = db.get(Message, message_id)
    if not message:
        raise NotFoundError("Message not found")
    owner = db.execute(select(Chat.company_id).where(Chat.id == message.chat_id)).scalar_one()
    if owner != company_id:
        raise ForbiddenError("Access denied to this message")
    return message


def mark_read(db: Session, chat_id: UUID, company_id: UUID, reader_id: UUID) -> int:
    """Mark other senders' unread messages as read. Returns the count marked."""
    chat_service.get_chat(db, chat_id, company_id)
    result = db.execute(
        update(Message)
        .where(
            Message.chat_id == chat_id,
            Message.is_read.is_(False),
            or_(Message.sender_id.is_(None), Message.sender_id != reader_id),
        )
        .values(is_read=True, read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
