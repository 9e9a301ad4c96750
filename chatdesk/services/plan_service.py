"""Plan catalog management (super admin)."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatdesk.core.errors import ConflictError, NotFoundError
from chatdesk.db.models import Plan, Subscription
from chatdesk.schemas.plan import PlanCreate, PlanUpdate


def list_plans(db: Session, include_inactive: bool = False) -> list[Plan]:
    """List plans ordered by price (cheapest first)."""
    query = select(Plan)
    if not include_inactive:
        query = query.where(Plan.is_active.is_(True))
    return list(db.execute(query.order_by(Plan.price, Plan.name)).scalars().all())


def get_plan(db: Session, plan_id: UUID) -> Plan:
    plan = db.get(Plan, plan_id)
    if not plan:
        raise NotFoundError("Plan not found")
    return plan


def get_plan_by_slug(db: Session, slug: str) -> Plan:
    plan = db.execute(select(Plan).where(Plan.slug == slug)).scalar_one_or_none()
    if not plan:
        raise NotFoundError("Plan not found")
    return plan


def create_plan(db: Session, data: PlanCreate) -> Plan:
    if db.execute(select(Plan.id).where(Plan.slug == data.slug)).first():
        raise ConflictError(f"Plan slug '{data.slug}' already exists")

    values = data.model_dump()
    values["allowed_features"] = [f.value for f in data.allowed_features]
    plan = Plan(**values)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def update_plan(db: Session, plan_id: UUID, data: PlanUpdate) -> Plan:
    plan = get_plan(db, plan_id)
    changes = data.model_dump(exclude_unset=True)
    if "allowed_features" in changes and changes["allowed_features"] is not None:
        changes["allowed_features"] = [f.value for f in data.allowed_features]
    for field, value in changes.items():
        if value is not None:
            setattr(plan, field, value)
    db.commit()
    db.refresh(plan)
    return plan


def delete_plan(db: Session, plan_id: UUID) -> None:
    """Delete a plan. Refused while any subscription references it."""
    plan = get_plan(db, plan_id)
    in_use = db.execute(
        select(func.count(Subscription.id)).where(Subscription.plan_id == plan.id)
    ).scalar_one()
    if in_use:
        raise ConflictError(f"Plan is used by {in_use} subscription(s)")
    db.delete(plan)
    db.commit()
