"""Role management: shared system roles plus company-scoped custom roles."""

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from chatdesk.core.errors import ConflictError, ForbiddenError, NotFoundError
from chatdesk.db.enums import Feature
from chatdesk.db.models import Role, RolePermission, User
from chatdesk.schemas.role import PermissionRead, RoleCreate, RoleRead, RoleUpdate
from chatdesk.services import permission_service, plan_check_service

logger = logging.getLogger(__name__)


def to_read(role: Role) -> RoleRead:
    return RoleRead(
        id=role.id,
        company_id=role.company_id,
        name=role.name,
        description=role.description,
        is_system=role.is_system,
        created_at=role.created_at,
        permissions=[
            PermissionRead.model_validate(rp.permission)
            for rp in sorted(role.role_permissions, key=lambda rp: rp.permission.name)
        ],
    )


def _with_permissions():
    return selectinload(Role.role_permissions).selectinload(RolePermission.permission)


def _name_taken(db: Session, company_id: UUID, name: str, exclude_id: UUID | None = None) -> bool:
    stmt = select(Role.id).where(
        func.lower(Role.name) == name.strip().lower(),
        or_(Role.company_id == company_id, Role.company_id.is_(None)),
    )
    if exclude_id:
        stmt = stmt.where(Role.id != exclude_id)
    return db.execute(stmt).first() is not None


def list_roles(db: Session, company_id: UUID) -> list[Role]:
    """System roles first, then the company's custom roles."""
    return list(
        db.execute(
            select(Role)
            .where(or_(Role.company_id == company_id, Role.company_id.is_(None)))
            .options(_with_permissions())
            .order_by(Role.is_system.desc(), Role.name)
        ).scalars().all()
    )


def get_role(db: Session, role_id: UUID, company_id: UUID | None) -> Role:
    """
    System roles are visible to every company; custom roles only to their own.

    Raises:
        NotFoundError: No such role
        ForbiddenError: Custom role of another company
    """
    role = db.execute(
        select(Role).where(Role.id == role_id).options(_with_permissions())
    ).scalar_one_or_none()
    if not role:
        raise NotFoundError("Role not found")
    if role.company_id is not None and company_id is not None and role.company_id != company_id:
        raise ForbiddenError("Access denied")
    return role


def create_role(db: Session, company_id: UUID, data: RoleCreate) -> Role:
    """
    Create a custom role. Requires the 'roles' plan feature.

    Raises:
        ForbiddenError: Plan lacks the roles feature
        ConflictError: Name already used in the company (or by a system role)
        NotFoundError: Unknown permission id
    """
    plan_check_service.require_feature(db, company_id, Feature.ROLES.value)
    if _name_taken(db, company_id, data.name):
        raise ConflictError(f"Role '{data.name}' already exists")
    permissions = permission_service.get_permissions_by_ids(db, data.permission_ids)

    role = Role(
        company_id=company_id,
        name=data.name.strip(),
        description=data.description,
        is_system=False,
    )
    role.role_permissions = [RolePermission(permission_id=p.id) for p in permissions]
    db.add(role)
    db.commit()
    logger.info("Created role %s in company %s", role.id, company_id)
    return get_role(db, role.id, company_id)


def _ensure_mutable(role: Role) -> None:
    if role.is_system or role.company_id is None:
        raise ForbiddenError("System roles cannot be modified")


def update_role(db: Session, role_id: UUID, company_id: UUID, data: RoleUpdate) -> Role:
    role = get_role(db, role_id, company_id)
    _ensure_mutable(role)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("name") and changes["name"].strip() != role.name:
        if _name_taken(db, company_id, changes["name"], exclude_id=role.id):
            raise ConflictError(f"Role '{changes['name']}' already exists")
        role.name = changes["name"].strip()
    if "description" in changes:
        role.description = changes["description"]
    if changes.get("permission_ids") is not None:
        permissions = permission_service.get_permissions_by_ids(db, changes["permission_ids"])
        role.role_permissions.clear()
        db.flush()
        role.role_permissions.extend(RolePermission(permission_id=p.id) for p in permissions)

    db.commit()
    db.expire(role)
    return get_role(db, role.id, company_id)


def delete_role(db: Session, role_id: UUID, company_id: UUID) -> None:
    """
    Raises:
        ForbiddenError: System role
        ConflictError: Role still assigned to users
    """
    role = get_role(db, role_id, company_id)
    _ensure_mutable(role)
    in_use = db.execute(select(func.count(User.id)).where(User.role_id == role.id)).scalar_one()
    if in_use:
        raise ConflictError(f"Role is assigned to {in_use} user(s)")
    db.delete(role)
    db.commit()
