"""
Realtime chat gateway: connection authentication and event handlers.

Frames are JSON objects:

    client -> server   {"event": "send_message", "data": {...}, "id": "c1"}
    server -> client   {"event": "ack", "id": "c1", "data": {...}}
    broadcast          {"event": "new_message" | "typing", "data": {...}}

Handlers never raise into the socket loop; failures become
{"error": reason} acks. Each handler opens its own short DB session in
the threadpool. Payload keys are camelCase (chatId, messageType, isTyping);
snake_case keys are accepted as well.
"""

import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from fastapi import WebSocket
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from chatdesk.core.errors import ForbiddenError, ServiceError, UnauthorizedError
from chatdesk.core.presence import PresenceStore, online_key, queue_key
from chatdesk.core.websocket import (
    AGENT,
    VISITOR,
    ChatConnection,
    ConnectionManager,
    chat_room,
)
from chatdesk.db.enums import ChatStatus
from chatdesk.db.models import Chat
from chatdesk.schemas.chat import (
    ChatEventPayload,
    MessageRead,
    SendMessagePayload,
    TypingPayload,
)
from chatdesk.services import auth_service, chat_service, company_service, message_service

logger = logging.getLogger(__name__)

# Close code for unauthenticated connections
WS_CLOSE_UNAUTHORIZED = 4001

MAX_CONTENT_LENGTH = 10000

Handler = Callable[[ChatConnection, dict], Awaitable[dict]]


class ChatGateway:
    """Authenticates sockets and dispatches client events."""

    def __init__(
        self,
        session_factory: sessionmaker,
        presence: PresenceStore,
        connections: ConnectionManager,
    ):
        self.session_factory = session_factory
        self.presence = presence
        self.connections = connections
        self._handlers: dict[str, Handler] = {
            "join_chat": self.join_chat,
            "leave_chat": self.leave_chat,
            "send_message": self.send_message,
            "typing": self.typing,
            "ping": self.ping,
        }

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    def authenticate(
        self,
        websocket: WebSocket,
        token: str | None,
        widget_key: str | None,
        visitor_id: str | None,
    ) -> ChatConnection:
        """
        Agents present a bearer token; visitors present a widget key.

        Raises:
            UnauthorizedError: Neither credential is valid
        """
        with self.session_factory() as db:
            if token:
                user, _role = auth_service.authenticate_token(db, token)
                return ChatConnection(
                    websocket=websocket,
                    kind=AGENT,
                    company_id=user.company_id,
                    user_id=user.id,
                )
            if widget_key:
                try:
                    company = company_service.get_company_by_widget_key(db, widget_key)
                except ServiceError:
                    raise UnauthorizedError("Invalid widget key")
                return ChatConnection(
                    websocket=websocket,
                    kind=VISITOR,
                    company_id=company.id,
                    visitor_id=visitor_id,
                )
        raise UnauthorizedError("Authentication required")

    async def connect(
        self,
        websocket: WebSocket,
        token: str | None = None,
        widget_key: str | None = None,
        visitor_id: str | None = None,
    ) -> ChatConnection | None:
        """Authenticate, accept and register a socket. Closes with 4001 on failure."""
        try:
            conn = await run_in_threadpool(
                self.authenticate, websocket, token, widget_key, visitor_id
            )
        except UnauthorizedError as exc:
            logger.info("Rejected realtime connection: %s", exc.message)
            await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=exc.message)
            return None

        await websocket.accept()
        await self.connections.register(conn)
        if conn.is_agent:
            await self.presence.sadd(online_key(conn.company_id), str(conn.user_id))
        logger.debug("Realtime %s connected for company %s", conn.kind, conn.company_id)
        return conn

    async def disconnect(self, conn: ChatConnection) -> None:
        remaining = await self.connections.disconnect(conn)
        if conn.is_agent and remaining == 0:
            await self.presence.srem(online_key(conn.company_id), str(conn.user_id))

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def handle(self, conn: ChatConnection, frame: Any) -> dict:
        """Route one client frame to its handler and build the ack."""
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            return {"event": "ack", "id": None, "data": {"error": "Invalid frame"}}

        frame_id = frame.get("id")
        handler = self._handlers.get(frame["event"])
        if handler is None:
            payload = {"error": f"Unknown event: {frame['event']}"}
        else:
            data = frame.get("data") or {}
            if not isinstance(data, dict):
                payload = {"error": "Invalid payload"}
            else:
                payload = await self._run(handler, conn, data)
        return {"event": "ack", "id": frame_id, "data": payload}

    async def _run(self, handler: Handler, conn: ChatConnection, data: dict) -> dict:
        try:
            return await handler(conn, data)
        except ServiceError as exc:
            return {"error": exc.message}
        except (KeyError, ValueError, TypeError) as exc:
            logger.debug("Bad realtime payload: %s", exc)
            return {"error": "Invalid payload"}

    def _chat_for(self, db: Session, conn: ChatConnection, chat_id: UUID) -> Chat:
        chat = chat_service.get_chat(db, chat_id, conn.company_id)
        if (
            conn.kind == VISITOR
            and conn.visitor_id
            and chat.visitor_id != conn.visitor_id
        ):
            raise ForbiddenError("Not a participant of this chat")
        return chat

    def _load_chat(self, conn: ChatConnection, chat_id: UUID) -> Chat:
        with self.session_factory() as db:
            return self._chat_for(db, conn, chat_id)

    def _persist_message(
        self,
        conn: ChatConnection,
        payload: SendMessagePayload,
    ) -> tuple[dict, bool]:
        """Store the message; a visitor's first message activates a pending chat."""
        with self.session_factory() as db:
            chat = self._chat_for(db, conn, payload.chat_id)
            message = message_service.create_message(
                db,
                conn.company_id,
                chat.id,
                payload.content,
                sender_id=conn.user_id if conn.is_agent else None,
                message_type=payload.message_type,
            )
            activated = False
            if conn.kind == VISITOR and chat.status == ChatStatus.PENDING.value:
                activated = chat_service.mark_active(db, chat.id)
            return MessageRead.model_validate(message).model_dump(mode="json"), activated

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def join_chat(self, conn: ChatConnection, data: dict) -> dict:
        payload = ChatEventPayload.model_validate(data)
        chat = await run_in_threadpool(self._load_chat, conn, payload.chat_id)
        await self.connections.join(conn, chat_room(chat.id))
        return {"success": True, "chat_id": str(chat.id)}

    async def leave_chat(self, conn: ChatConnection, data: dict) -> dict:
        payload = ChatEventPayload.model_validate(data)
        await self.connections.leave(conn, chat_room(payload.chat_id))
        return {"success": True, "chat_id": str(payload.chat_id)}

    async def send_message(self, conn: ChatConnection, data: dict) -> dict:
        payload = SendMessagePayload.model_validate(data)
        content = payload.content
        if not isinstance(content, str) or not content.strip():
            return {"error": "Message content is required"}
        if len(content) > MAX_CONTENT_LENGTH:
            return {"error": "Message content is too long"}

        message, activated = await run_in_threadpool(self._persist_message, conn, payload)

        # Broadcast only after the row is committed; the sender is a room member too
        await self.connections.broadcast(
            chat_room(payload.chat_id),
            {"event": "new_message", "data": message},
        )
        if activated:
            await self.presence.srem(queue_key(conn.company_id), str(payload.chat_id))

        return {"success": True, "message": message}

    async def typing(self, conn: ChatConnection, data: dict) -> dict:
        payload = TypingPayload.model_validate(data)
        chat = await run_in_threadpool(self._load_chat, conn, payload.chat_id)
        await self.connections.broadcast(
            chat_room(chat.id),
            {
                "event": "typing",
                "data": {
                    "chat_id": str(chat.id),
                    "is_typing": payload.is_typing,
                    "sender_type": conn.kind,
                    "user_id": str(conn.user_id) if conn.user_id else None,
                    "visitor_id": conn.visitor_id,
                },
            },
            exclude=conn,
        )
        return {"success": True}

    async def ping(self, conn: ChatConnection, data: dict) -> dict:
        return {"pong": True}
