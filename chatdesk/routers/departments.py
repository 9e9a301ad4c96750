"""Department endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_request_context, require_policy
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.department import DepartmentCreate, DepartmentRead, DepartmentUpdate
from chatdesk.services import department_service

router = APIRouter(prefix="/departments", tags=["departments"])


@router.post("", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
def create_department(
    data: DepartmentCreate,
    ctx: RequestContext = Depends(require_policy("departments.create")),
    db: Session = Depends(get_db),
):
    department = department_service.create_department(db, ctx.company_id, data)
    return department_service.to_read(db, department)


@router.get("", response_model=list[DepartmentRead])
def list_departments(
    include_inactive: bool = Query(True),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    departments = department_service.list_departments(db, ctx.company_id, include_inactive)
    return [department_service.to_read(db, d) for d in departments]


@router.get("/{department_id}", response_model=DepartmentRead)
def get_department(
    department_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    department = department_service.get_department(db, department_id, ctx.company_id)
    return department_service.to_read(db, department)


@router.patch("/{department_id}", response_model=DepartmentRead)
def update_department(
    department_id: UUID,
    data: DepartmentUpdate,
    ctx: RequestContext = Depends(require_policy("departments.update")),
    db: Session = Depends(get_db),
):
    department = department_service.update_department(db, department_id, ctx.company_id, data)
    return department_service.to_read(db, department)


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(
    department_id: UUID,
    ctx: RequestContext = Depends(require_policy("departments.delete")),
    db: Session = Depends(get_db),
):
    department_service.delete_department(db, department_id, ctx.company_id)
