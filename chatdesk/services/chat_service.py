"""
Chat lifecycle: creation, listing, updates, assignment, and the pending queue.

    pending -> active -> assigned -> closed

Every read or mutation verifies chat.company_id against the caller's company:
a missing chat is NotFoundError, another tenant's chat is ForbiddenError.

The presence store's queue set is a hint; persisted chat status wins.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from chatdesk.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from chatdesk.core.presence import PresenceStore, queue_key
from chatdesk.db.enums import AnalyticsEventType, ChatStatus
from chatdesk.db.models import Chat, ChatAssignment, Department, Message, User
from chatdesk.schemas.chat import AssignmentRead, ChatCreate, ChatRead, ChatUpdate
from chatdesk.services import analytics_service
from chatdesk.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)

ASSIGN_ATTEMPTS = 2


# =============================================================================
# Serialization
# =============================================================================

def message_counts(db: Session, chat_ids: list[UUID]) -> dict[UUID, int]:
    if not chat_ids:
        return {}
    rows = db.execute(
        select(Message.chat_id, func.count(Message.id))
        .where(Message.chat_id.in_(chat_ids))
        .group_by(Message.chat_id)
    ).all()
    return {chat_id: count for chat_id, count in rows}


def to_read(chat: Chat, message_count: int = 0, active_only: bool = False) -> ChatRead:
    assignments = [a for a in chat.assignments if a.is_active or not active_only]
    return ChatRead(
        id=chat.id,
        company_id=chat.company_id,
        department_id=chat.department_id,
        visitor_id=chat.visitor_id,
        visitor_name=chat.visitor_name,
        visitor_email=chat.visitor_email,
        visitor_phone=chat.visitor_phone,
        status=chat.status,
        priority=chat.priority,
        rating=chat.rating,
        rating_comment=chat.rating_comment,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        closed_at=chat.closed_at,
        assignments=[
            AssignmentRead.model_validate(a).model_copy(
                update={"agent_name": a.agent.full_name if a.agent else None}
            )
            for a in assignments
        ],
        message_count=message_count,
    )


def _chat_options():
    return selectinload(Chat.assignments).selectinload(ChatAssignment.agent)


# =============================================================================
# Isolation
# =============================================================================

def get_chat(db: Session, chat_id: UUID, company_id: UUID) -> Chat:
    """
    Load a chat owned by company_id.

    Raises:
        NotFoundError: No such chat
        ForbiddenError: Chat belongs to another company
    """
    chat = db.execute(
        select(Chat).where(Chat.id == chat_id).options(_chat_options())
    ).scalar_one_or_none()
    if not chat:
        raise NotFoundError("Chat not found")
    if chat.company_id != company_id:
        logger.warning("Cross-tenant chat access denied: chat=%s company=%s", chat_id, company_id)
        raise ForbiddenError("Access denied to this chat")
    return chat


def get_chat_read(db: Session, chat_id: UUID, company_id: UUID) -> ChatRead:
    chat = get_chat(db, chat_id, company_id)
    return to_read(chat, message_counts(db, [chat.id]).get(chat.id, 0))


def _check_department(db: Session, department_id: UUID, company_id: UUID) -> None:
    department = db.get(Department, department_id)
    if not department or department.company_id != company_id:
        raise ForbiddenError("Department does not belong to this company")


# =============================================================================
# Create / list / update
# =============================================================================
#
# The async entry points run their database work through run_in_threadpool
# and keep only presence-store calls on the event loop.

def _insert_chat(
    db: Session,
    data: ChatCreate,
    company_id: UUID,
    visitor_ip: str | None,
    visitor_user_agent: str | None,
) -> Chat:
    if data.department_id:
        _check_department(db, data.department_id, company_id)

    chat = Chat(
        company_id=company_id,
        department_id=data.department_id,
        visitor_id=data.visitor_id or f"visitor_{uuid4()}",
        visitor_name=data.visitor_name,
        visitor_email=data.visitor_email,
        visitor_phone=data.visitor_phone,
        visitor_ip=visitor_ip,
        visitor_user_agent=visitor_user_agent[:500] if visitor_user_agent else None,
        status=ChatStatus.PENDING.value,
    )
    db.add(chat)
    db.commit()

    analytics_service.track_event(
        db,
        company_id,
        AnalyticsEventType.CHAT_CREATED.value,
        data={"chat_id": str(chat.id), "department_id": str(data.department_id) if data.department_id else None},
    )
    logger.info("Chat %s created for company %s", chat.id, company_id)
    return chat


async def create_chat(
    db: Session,
    presence: PresenceStore,
    data: ChatCreate,
    company_id: UUID,
    visitor_ip: str | None = None,
    visitor_user_agent: str | None = None,
) -> ChatRead:
    """Open a pending chat for a visitor and enqueue it."""
    chat = await run_in_threadpool(
        _insert_chat, db, data, company_id, visitor_ip, visitor_user_agent
    )
    await presence.sadd(queue_key(company_id), str(chat.id))
    return await run_in_threadpool(get_chat_read, db, chat.id, company_id)


def list_chats(
    db: Session,
    company_id: UUID,
    pagination: PaginationParams,
    status: ChatStatus | None = None,
    agent_id: UUID | None = None,
) -> tuple[list[ChatRead], int]:
    """Company chats, newest first, with active assignments and message counts."""
    stmt = select(Chat).where(Chat.company_id == company_id)
    if status:
        stmt = stmt.where(Chat.status == status.value)
    if agent_id:
        stmt = stmt.where(
            Chat.id.in_(
                select(ChatAssignment.chat_id).where(
                    ChatAssignment.agent_id == agent_id,
                    ChatAssignment.is_active.is_(True),
                )
            )
        )

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    chats = db.execute(
        stmt.options(_chat_options())
        .order_by(Chat.created_at.desc())
        .offset(pagination.offset)
        .limit(pagination.per_page)
    ).scalars().all()
    counts = message_counts(db, [c.id for c in chats])
    return [to_read(c, counts.get(c.id, 0), active_only=True) for c in chats], total


def _apply_update(
    db: Session,
    chat_id: UUID,
    patch: ChatUpdate,
    company_id: UUID,
    user_id: UUID | None,
) -> tuple[ChatRead, str, str | None]:
    """Persist a patch. Returns (chat, previous_status, new_status)."""
    chat = get_chat(db, chat_id, company_id)
    changes = patch.model_dump(exclude_unset=True)
    previous_status = chat.status

    if changes.get("department_id"):
        _check_department(db, changes["department_id"], company_id)
        chat.department_id = changes["department_id"]
    elif "department_id" in changes:
        chat.department_id = None

    new_status = changes.get("status")
    if new_status is not None:
        new_status = ChatStatus(new_status).value
        if new_status == ChatStatus.CLOSED.value and previous_status != ChatStatus.CLOSED.value:
            chat.closed_at = datetime.now(timezone.utc)
        chat.status = new_status

    if changes.get("priority"):
        chat.priority = changes["priority"]
    if "rating" in changes:
        chat.rating = changes["rating"]
    if "rating_comment" in changes:
        chat.rating_comment = changes["rating_comment"]

    db.commit()

    if new_status == ChatStatus.CLOSED.value and previous_status != new_status:
        analytics_service.track_event(
            db, company_id, AnalyticsEventType.CHAT_CLOSED.value,
            user_id=user_id, data={"chat_id": str(chat.id)},
        )

    db.expire(chat)
    return get_chat_read(db, chat.id, company_id), previous_status, new_status


async def update_chat(
    db: Session,
    presence: PresenceStore,
    chat_id: UUID,
    patch: ChatUpdate,
    company_id: UUID,
    user_id: UUID | None = None,
) -> ChatRead:
    chat, previous_status, new_status = await run_in_threadpool(
        _apply_update, db, chat_id, patch, company_id, user_id
    )

    if new_status is not None and new_status != previous_status:
        if previous_status == ChatStatus.PENDING.value:
            await presence.srem(queue_key(company_id), str(chat.id))
        elif new_status == ChatStatus.PENDING.value:
            await presence.sadd(queue_key(company_id), str(chat.id))
    return chat


def mark_active(db: Session, chat_id: UUID) -> bool:
    """Move a pending chat to active (first visitor message). Returns True if moved."""
    result = db.execute(
        update(Chat)
        .where(Chat.id == chat_id, Chat.status == ChatStatus.PENDING.value)
        .values(status=ChatStatus.ACTIVE.value, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return bool(result.rowcount)


# =============================================================================
# Assignment
# =============================================================================

def _assign_once(
    db: Session,
    chat_id: UUID,
    agent_id: UUID,
    assigned_by: UUID | None,
) -> ChatAssignment:
    # Row lock serializes concurrent assigns for the same chat
    chat = db.execute(
        select(Chat)
        .where(Chat.id == chat_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not chat:
        db.rollback()
        raise NotFoundError("Chat not found")
    if chat.status == ChatStatus.CLOSED.value:
        db.rollback()
        raise BadRequestError("Cannot assign a closed chat")

    now = datetime.now(timezone.utc)
    db.execute(
        update(ChatAssignment)
        .where(ChatAssignment.chat_id == chat_id, ChatAssignment.is_active.is_(True))
        .values(is_active=False, unassigned_at=now)
        .execution_options(synchronize_session="fetch")
    )
    assignment = ChatAssignment(
        chat_id=chat_id,
        agent_id=agent_id,
        assigned_by=assigned_by,
        is_active=True,
        assigned_at=now,
    )
    db.add(assignment)
    chat.status = ChatStatus.ASSIGNED.value
    db.commit()
    return assignment


def assign_chat_locked(
    db: Session,
    chat_id: UUID,
    agent_id: UUID,
    company_id: UUID,
    assigned_by: UUID | None = None,
) -> ChatRead:
    """
    Assign a chat to an agent, replacing any active assignment.

    The deactivate/insert/status change is one transaction holding a row
    lock on the chat, and the closed check runs under that lock. The partial
    unique index on active assignments backs it. A transaction losing the
    race on that index is retried once.

    Raises:
        NotFoundError: Chat missing, or agent not an active user of the company
        ForbiddenError: Chat belongs to another company
        BadRequestError: Chat is closed
        ConflictError: Lost the assignment race twice
    """
    chat = get_chat(db, chat_id, company_id)

    agent = db.get(User, agent_id)
    if not agent or agent.company_id != company_id or not agent.is_active:
        raise NotFoundError("Agent not found")

    for attempt in range(ASSIGN_ATTEMPTS):
        try:
            _assign_once(db, chat.id, agent.id, assigned_by)
            break
        except IntegrityError:
            db.rollback()
            logger.info("Assignment race on chat %s (attempt %d)", chat.id, attempt + 1)
    else:
        raise ConflictError("Chat was assigned concurrently; try again")

    analytics_service.track_event(
        db, company_id, AnalyticsEventType.CHAT_ASSIGNED.value,
        user_id=assigned_by, data={"chat_id": str(chat.id), "agent_id": str(agent.id)},
    )
    logger.info("Chat %s assigned to %s", chat.id, agent.id)

    db.expire_all()
    return get_chat_read(db, chat.id, company_id)


async def assign_chat(
    db: Session,
    presence: PresenceStore,
    chat_id: UUID,
    agent_id: UUID,
    company_id: UUID,
    assigned_by: UUID | None = None,
) -> ChatRead:
    """Assign off the event loop, then drop the chat from the queue set."""
    chat = await run_in_threadpool(
        assign_chat_locked, db, chat_id, agent_id, company_id, assigned_by
    )
    await presence.srem(queue_key(company_id), str(chat.id))
    return chat


def get_active_assignments(db: Session, chat_id: UUID) -> list[ChatAssignment]:
    return list(
        db.execute(
            select(ChatAssignment).where(
                ChatAssignment.chat_id == chat_id,
                ChatAssignment.is_active.is_(True),
            )
        ).scalars().all()
    )


# =============================================================================
# Queue
# =============================================================================

def _parse_ids(members: list[str]) -> tuple[list[UUID], list[str]]:
    valid, invalid = [], []
    for member in members:
        try:
            valid.append(UUID(member))
        except ValueError:
            invalid.append(member)
    return valid, invalid


def _load_pending(db: Session, company_id: UUID, ids: list[UUID]) -> list[ChatRead]:
    if not ids:
        return []
    chats = db.execute(
        select(Chat)
        .where(
            Chat.id.in_(ids),
            Chat.company_id == company_id,
            Chat.status == ChatStatus.PENDING.value,
        )
        .options(_chat_options())
        .order_by(Chat.created_at.asc())
    ).scalars().all()
    counts = message_counts(db, [c.id for c in chats])
    return [to_read(c, counts.get(c.id, 0), active_only=True) for c in chats]


async def get_queue(db: Session, presence: PresenceStore, company_id: UUID) -> list[ChatRead]:
    """
    Pending chats awaiting an agent, oldest first.

    Ids from the store are re-validated against the database (still pending,
    same company); stale ids are pruned from the set.
    """
    key = queue_key(company_id)
    members = await presence.smembers(key)
    if not members:
        return []

    ids, stale = _parse_ids(members)
    chats = await run_in_threadpool(_load_pending, db, company_id, ids)

    valid_ids = {str(c.id) for c in chats}
    stale.extend(str(i) for i in ids if str(i) not in valid_ids)
    if stale:
        await presence.srem(key, *stale)
        logger.debug("Pruned %d stale queue entries for company %s", len(stale), company_id)
    return chats
