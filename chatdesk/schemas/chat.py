"""Pydantic schemas for chats, assignments and messages."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatdesk.db.enums import DEFAULT_MESSAGE_TYPE, ChatStatus


class CamelRequest(BaseModel):
    """Widget and agent clients send camelCase keys; snake_case is accepted too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatCreate(CamelRequest):
    """Visitor-initiated chat (public; company resolved from widget key)."""
    widget_key: str | None = Field(None, description="Alternative to the X-Widget-Key header")
    visitor_id: str | None = Field(None, max_length=100)
    visitor_name: str | None = Field(None, max_length=255)
    visitor_email: str | None = Field(None, max_length=255)
    visitor_phone: str | None = Field(None, max_length=50)
    department_id: UUID | None = None


class ChatUpdate(CamelRequest):
    """Partial update. Priority is free-form."""
    status: ChatStatus | None = None
    priority: str | None = Field(None, min_length=1, max_length=20)
    department_id: UUID | None = None
    rating: int | None = Field(None, ge=1, le=5)
    rating_comment: str | None = Field(None, max_length=2000)


class AssignRequest(CamelRequest):
    agent_id: UUID


class AssignmentRead(BaseModel):
    id: UUID
    chat_id: UUID
    agent_id: UUID
    assigned_by: UUID | None
    is_active: bool
    assigned_at: datetime
    unassigned_at: datetime | None
    agent_name: str | None = None

    model_config = {"from_attributes": True}


class ChatRead(BaseModel):
    id: UUID
    company_id: UUID
    department_id: UUID | None
    visitor_id: str
    visitor_name: str | None
    visitor_email: str | None
    visitor_phone: str | None
    status: str
    priority: str
    rating: int | None
    rating_comment: str | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None
    assignments: list[AssignmentRead] = Field(default_factory=list)
    message_count: int = 0


class ChatListResponse(BaseModel):
    items: list[ChatRead]
    total: int
    page: int
    per_page: int
    pages: int


class MessageCreate(CamelRequest):
    chat_id: UUID
    content: str = Field(..., min_length=1, max_length=10000)
    message_type: str = Field(DEFAULT_MESSAGE_TYPE, max_length=20)


class MessageRead(BaseModel):
    id: UUID
    chat_id: UUID
    sender_type: str
    sender_id: UUID | None
    content: str
    message_type: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageListResponse(BaseModel):
    items: list[MessageRead]
    total: int
    page: int
    per_page: int
    pages: int


class MarkReadResponse(BaseModel):
    marked: int


# =============================================================================
# Realtime event payloads
# =============================================================================

class ChatEventPayload(CamelRequest):
    """join_chat / leave_chat: {chatId}."""
    chat_id: UUID


class SendMessagePayload(ChatEventPayload):
    """send_message: {chatId, content, messageType?}. Content is checked by the handler."""
    content: Any = None
    message_type: str | None = Field(None, max_length=20)


class TypingPayload(ChatEventPayload):
    """typing: {chatId, isTyping}."""
    is_typing: bool = True
