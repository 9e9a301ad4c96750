"""Public widget Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel


DEFAULT_WIDGET_THEME = {"primaryColor": "#007bff", "position": "bottom-right"}


class WidgetConfig(BaseModel):
    company_id: UUID
    widget_key: str
    theme: dict
    is_active: bool


class OnlineAgent(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    avatar: str | None = None
