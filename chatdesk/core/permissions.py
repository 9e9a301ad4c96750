"""Permission catalog with metadata, plus the default grants of system roles.

The catalog is global (not tenant-scoped). It is written to the permissions
table by the catalog bootstrap; roles reference rows, never these constants.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: str
    description: str
    category: str


class PermissionCategory(str, Enum):
    USER = "user"
    CHAT = "chat"
    REPORTS = "reports"
    BILLING = "billing"
    API = "api"
    AUTOMATION = "automation"


class PermissionKey(str, Enum):
    CREATE_AGENT = "create_agent"
    EDIT_AGENT = "edit_agent"
    DELETE_AGENT = "delete_agent"
    ASSIGN_CHAT = "assign_chat"
    VIEW_ALL_CHATS = "view_all_chats"
    VIEW_REPORTS = "view_reports"
    BILLING_ACCESS = "billing_access"
    MANAGE_ROLES = "manage_roles"
    MANAGE_DEPARTMENTS = "manage_departments"
    API_ACCESS = "api_access"
    AUTOMATION = "automation"


P = PermissionKey
C = PermissionCategory

# =============================================================================
# Permission Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    p.key: p
    for p in (
        PermissionDef(P.CREATE_AGENT.value, "Create new agents", C.USER.value),
        PermissionDef(P.EDIT_AGENT.value, "Edit agent details", C.USER.value),
        PermissionDef(P.DELETE_AGENT.value, "Delete agents", C.USER.value),
        PermissionDef(P.ASSIGN_CHAT.value, "Assign chats to agents", C.CHAT.value),
        PermissionDef(P.VIEW_ALL_CHATS.value, "View all company chats", C.CHAT.value),
        PermissionDef(P.VIEW_REPORTS.value, "View analytics and reports", C.REPORTS.value),
        PermissionDef(P.BILLING_ACCESS.value, "Access billing and subscription", C.BILLING.value),
        PermissionDef(P.MANAGE_ROLES.value, "Create and manage custom roles", C.USER.value),
        PermissionDef(P.MANAGE_DEPARTMENTS.value, "Create and manage departments", C.USER.value),
        PermissionDef(P.API_ACCESS.value, "Access API endpoints", C.API.value),
        PermissionDef(P.AUTOMATION.value, "Configure automation rules", C.AUTOMATION.value),
    )
}


# System role -> granted permission keys
ROLE_DEFAULTS: dict[str, set[str]] = {
    "super_admin": set(PERMISSION_REGISTRY.keys()),
    "company_admin": set(PERMISSION_REGISTRY.keys()),
    "manager": {
        P.ASSIGN_CHAT.value,
        P.VIEW_ALL_CHATS.value,
        P.VIEW_REPORTS.value,
    },
    "agent": {
        P.ASSIGN_CHAT.value,
        P.VIEW_ALL_CHATS.value,
    },
}

SYSTEM_ROLE_DESCRIPTIONS: dict[str, str] = {
    "super_admin": "Platform super administrator",
    "company_admin": "Company administrator",
    "manager": "Team manager",
    "agent": "Support agent",
}


# =============================================================================
# Helper Functions
# =============================================================================

def get_all_permissions() -> list[PermissionDef]:
    """Get all permissions sorted by category."""
    return sorted(PERMISSION_REGISTRY.values(), key=lambda p: (p.category, p.key))


def is_valid_permission(key: str) -> bool:
    return key in PERMISSION_REGISTRY


def get_role_default_permissions(role: str) -> set[str]:
    """Get default permissions for a system role."""
    return ROLE_DEFAULTS.get(role, set())
