"""Enum definitions for application constants."""

from enum import Enum


class SystemRole(str, Enum):
    """
    Roles shared by every company.

    - SUPER_ADMIN: platform operator (plans, subscriptions, admin views)
    - COMPANY_ADMIN: tenant owner, created at registration
    - MANAGER: team lead
    - AGENT: answers chats; counted against the plan's agent limit
    """
    SUPER_ADMIN = "super_admin"
    COMPANY_ADMIN = "company_admin"
    MANAGER = "manager"
    AGENT = "agent"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a system role name."""
        return value in cls._value2member_map_


class ChatStatus(str, Enum):
    """
    Chat lifecycle.

        pending → active → assigned → closed

    A chat becomes active on the first visitor message, assigned when an
    agent takes it, closed explicitly.
    """
    PENDING = "pending"
    ACTIVE = "active"
    ASSIGNED = "assigned"
    CLOSED = "closed"


class SenderType(str, Enum):
    VISITOR = "visitor"
    AGENT = "agent"
    SYSTEM = "system"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


class LimitType(str, Enum):
    """Numeric plan ceilings checked before creates."""
    USERS = "users"
    AGENTS = "agents"
    DEPARTMENTS = "departments"


class Feature(str, Enum):
    """Plan feature flags (Plan.allowed_features)."""
    ROLES = "roles"
    REPORTS = "reports"
    AUTOMATION = "automation"
    API_ACCESS = "api_access"


class AnalyticsEventType(str, Enum):
    CHAT_CREATED = "chat_created"
    CHAT_ASSIGNED = "chat_assigned"
    CHAT_CLOSED = "chat_closed"
    MESSAGE_SENT = "message_sent"


DEFAULT_MESSAGE_TYPE = "text"
DEFAULT_PRIORITY = "normal"

# Subscription states that grant plan access
ENTITLED_SUBSCRIPTION_STATUSES = {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIAL.value}
