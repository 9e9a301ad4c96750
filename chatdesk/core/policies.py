"""Centralized route policies: required permissions and roles per route key."""

from dataclasses import dataclass, field

from chatdesk.core.errors import ForbiddenError
from chatdesk.core.permissions import PermissionKey as P
from chatdesk.db.enums import SystemRole


@dataclass(frozen=True)
class RoutePolicy:
    """Every permission is required; when roles is non-empty, one must match."""

    permissions: frozenset[str] = field(default_factory=frozenset)
    roles: frozenset[str] = field(default_factory=frozenset)


def _perms(*keys: P) -> RoutePolicy:
    return RoutePolicy(permissions=frozenset(k.value for k in keys))


SUPER_ADMIN_ONLY = RoutePolicy(roles=frozenset({SystemRole.SUPER_ADMIN.value}))


ROUTE_POLICIES: dict[str, RoutePolicy] = {
    # Chats
    "chats.list": _perms(P.VIEW_ALL_CHATS),
    "chats.get": _perms(P.VIEW_ALL_CHATS),
    "chats.queue": _perms(P.ASSIGN_CHAT),
    "chats.update": _perms(P.ASSIGN_CHAT),
    "chats.assign": _perms(P.ASSIGN_CHAT),
    # Messages
    "messages.create": _perms(P.VIEW_ALL_CHATS),
    "messages.list": _perms(P.VIEW_ALL_CHATS),
    "messages.get": _perms(P.VIEW_ALL_CHATS),
    "messages.read": _perms(P.VIEW_ALL_CHATS),
    # Users
    "users.create": _perms(P.CREATE_AGENT),
    "users.list": _perms(P.VIEW_ALL_CHATS),
    "users.get": _perms(P.VIEW_ALL_CHATS),
    "users.update": _perms(P.EDIT_AGENT),
    "users.delete": _perms(P.DELETE_AGENT),
    # Departments
    "departments.create": _perms(P.MANAGE_DEPARTMENTS),
    "departments.update": _perms(P.MANAGE_DEPARTMENTS),
    "departments.delete": _perms(P.MANAGE_DEPARTMENTS),
    # Roles
    "roles.create": _perms(P.MANAGE_ROLES),
    "roles.update": _perms(P.MANAGE_ROLES),
    "roles.delete": _perms(P.MANAGE_ROLES),
    # Billing
    "companies.update": _perms(P.BILLING_ACCESS),
    "subscriptions.cancel": _perms(P.BILLING_ACCESS),
    "subscriptions.upgrade": _perms(P.BILLING_ACCESS),
    # Reports
    "analytics.view": _perms(P.VIEW_REPORTS),
    # Platform
    "plans.manage": SUPER_ADMIN_ONLY,
    "subscriptions.manage": SUPER_ADMIN_ONLY,
    "admin": SUPER_ADMIN_ONLY,
}


def get_policy(key: str) -> RoutePolicy:
    """Fetch a route policy or raise KeyError."""
    return ROUTE_POLICIES[key]


def require_permissions(held: set[str], required: set[str] | frozenset[str]) -> None:
    """Raise ForbiddenError naming every missing permission."""
    missing = sorted(set(required) - set(held))
    if missing:
        raise ForbiddenError(f"Missing required permissions: {', '.join(missing)}")


def require_role(role_name: str, allowed: set[str] | frozenset[str]) -> None:
    if role_name not in allowed:
        raise ForbiddenError(f"Role '{role_name}' not authorized for this action")


def evaluate_policy(policy: RoutePolicy, role_name: str, held: set[str]) -> None:
    """Apply a route policy to a caller's role and permissions."""
    if policy.roles:
        require_role(role_name, policy.roles)
    if policy.permissions:
        require_permissions(held, policy.permissions)
