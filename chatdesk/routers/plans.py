"""Plan catalog: public reads, super-admin writes."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, require_policy
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.plan import PlanCreate, PlanRead, PlanUpdate
from chatdesk.services import plan_service

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("", response_model=list[PlanRead])
def list_plans(db: Session = Depends(get_db)):
    """Active plans, cheapest first."""
    return plan_service.list_plans(db)


@router.get("/slug/{slug}", response_model=PlanRead)
def get_plan_by_slug(slug: str, db: Session = Depends(get_db)):
    return plan_service.get_plan_by_slug(db, slug)


@router.get("/{plan_id}", response_model=PlanRead)
def get_plan(plan_id: UUID, db: Session = Depends(get_db)):
    return plan_service.get_plan(db, plan_id)


@router.post("", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
def create_plan(
    data: PlanCreate,
    ctx: RequestContext = Depends(require_policy("plans.manage")),
    db: Session = Depends(get_db),
):
    return plan_service.create_plan(db, data)


@router.patch("/{plan_id}", response_model=PlanRead)
def update_plan(
    plan_id: UUID,
    data: PlanUpdate,
    ctx: RequestContext = Depends(require_policy("plans.manage")),
    db: Session = Depends(get_db),
):
    return plan_service.update_plan(db, plan_id, data)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(
    plan_id: UUID,
    ctx: RequestContext = Depends(require_policy("plans.manage")),
    db: Session = Depends(get_db),
):
    plan_service.delete_plan(db, plan_id)
