"""Idempotent bootstrap of global catalog rows: permissions, plans, system roles."""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from chatdesk.core.permissions import (
    PERMISSION_REGISTRY,
    SYSTEM_ROLE_DESCRIPTIONS,
    get_role_default_permissions,
)
from chatdesk.db.enums import Feature, SystemRole
from chatdesk.db.models import Permission, Plan, Role, RolePermission

logger = logging.getLogger(__name__)


DEFAULT_PLANS: list[dict] = [
    {
        "name": "Basic",
        "slug": "basic",
        "description": "Perfect for small teams",
        "price": Decimal("29.00"),
        "max_users": 5,
        "max_agents": 3,
        "max_departments": 2,
        "allowed_features": [Feature.ROLES.value, Feature.REPORTS.value],
        "chat_history_retention_days": 30,
    },
    {
        "name": "Pro",
        "slug": "pro",
        "description": "For growing businesses",
        "price": Decimal("99.00"),
        "max_users": 20,
        "max_agents": 10,
        "max_departments": 5,
        "allowed_features": [
            Feature.ROLES.value, Feature.REPORTS.value,
            Feature.AUTOMATION.value, Feature.API_ACCESS.value,
        ],
        "chat_history_retention_days": 90,
    },
    {
        "name": "Enterprise",
        "slug": "enterprise",
        "description": "For large organizations",
        "price": Decimal("299.00"),
        "max_users": 100,
        "max_agents": 50,
        "max_departments": 20,
        "allowed_features": [
            Feature.ROLES.value, Feature.REPORTS.value,
            Feature.AUTOMATION.value, Feature.API_ACCESS.value,
        ],
        "chat_history_retention_days": 365,
    },
]


def ensure_permissions(db: Session) -> dict[str, Permission]:
    existing = {p.name: p for p in db.execute(select(Permission)).scalars().all()}
    for key, definition in PERMISSION_REGISTRY.items():
        if key not in existing:
            permission = Permission(
                name=key,
                description=definition.description,
                category=definition.category,
            )
            db.add(permission)
            existing[key] = permission
            logger.info("Created permission %s", key)
    db.flush()
    return existing


def ensure_plans(db: Session) -> dict[str, Plan]:
    existing = {p.slug: p for p in db.execute(select(Plan)).scalars().all()}
    for data in DEFAULT_PLANS:
        if data["slug"] not in existing:
            plan = Plan(currency="USD", billing_cycle="monthly", **data)
            db.add(plan)
            existing[data["slug"]] = plan
            logger.info("Created plan %s", data["slug"])
    db.flush()
    return existing


def ensure_system_roles(db: Session, permissions: dict[str, Permission]) -> dict[str, Role]:
    roles = {
        r.name: r
        for r in db.execute(
            select(Role).where(Role.company_id.is_(None), Role.is_system.is_(True))
        ).scalars().all()
    }
    for role_name in SystemRole:
        name = role_name.value
        role = roles.get(name)
        if role is None:
            role = Role(
                name=name,
                description=SYSTEM_ROLE_DESCRIPTIONS.get(name),
                is_system=True,
                company_id=None,
            )
            db.add(role)
            db.flush()
            roles[name] = role
            logger.info("Created system role %s", name)

        granted = set(
            db.execute(
                select(RolePermission.permission_id).where(RolePermission.role_id == role.id)
            ).scalars().all()
        )
        for key in sorted(get_role_default_permissions(name)):
            permission = permissions[key]
            if permission.id not in granted:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id))
    db.flush()
    return roles


def ensure_catalog(db: Session) -> None:
    """Create any missing permissions, plans, system roles and grants. Commits."""
    permissions = ensure_permissions(db)
    ensure_plans(db)
    ensure_system_roles(db, permissions)
    db.commit()


def get_system_role(db: Session, name: str) -> Role | None:
    return db.execute(
        select(Role).where(
            Role.name == name,
            Role.company_id.is_(None),
            Role.is_system.is_(True),
        )
    ).scalar_one_or_none()
