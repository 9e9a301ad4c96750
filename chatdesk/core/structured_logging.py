"""Structured logging helpers (tenant-safe; never includes message content or PII)."""

import logging
from typing import Any

from chatdesk.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    """Configure root logging once at app startup."""
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)


def build_log_context(
    *,
    user_id: str | None = None,
    company_id: str | None = None,
    chat_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a tenant-safe log context dict."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if company_id:
        context["company_id"] = str(company_id)
    if chat_id:
        context["chat_id"] = str(chat_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
