"""Permission catalog reads and role permission resolution."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from chatdesk.core.errors import NotFoundError
from chatdesk.db.models import Permission, RolePermission


def get_role_permissions(db: Session, role_id: UUID) -> set[str]:
    """Resolve permission names granted to a role (role -> role_permissions -> permissions)."""
    rows = db.execute(
        select(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
    ).scalars().all()
    return set(rows)


def list_permissions(db: Session) -> list[Permission]:
    return list(
        db.execute(select(Permission).order_by(Permission.category, Permission.name)).scalars().all()
    )


def list_permissions_by_category(db: Session, category: str) -> list[Permission]:
    return list(
        db.execute(
            select(Permission)
            .where(Permission.category == category)
            .order_by(Permission.name)
        ).scalars().all()
    )


def get_permission(db: Session, permission_id: UUID) -> Permission:
    permission = db.get(Permission, permission_id)
    if not permission:
        raise NotFoundError("Permission not found")
    return permission


def get_permissions_by_ids(db: Session, permission_ids: list[UUID]) -> list[Permission]:
    """Load permissions by id; raises NotFoundError if any id is unknown."""
    if not permission_ids:
        return []
    unique_ids = set(permission_ids)
    permissions = list(
        db.execute(select(Permission).where(Permission.id.in_(unique_ids))).scalars().all()
    )
    if len(permissions) != len(unique_ids):
        raise NotFoundError("One or more permissions not found")
    return permissions
