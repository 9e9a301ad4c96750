"""Role endpoints. System roles are readable by every company and never mutable."""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_request_context, require_policy
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.role import RoleCreate, RoleRead, RoleUpdate
from chatdesk.services import role_service

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=list[RoleRead])
def list_roles(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return [role_service.to_read(r) for r in role_service.list_roles(db, ctx.company_id)]


@router.get("/{role_id}", response_model=RoleRead)
def get_role(
    role_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    company_id = None if ctx.is_super_admin else ctx.company_id
    return role_service.to_read(role_service.get_role(db, role_id, company_id))


@router.post("", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
def create_role(
    data: RoleCreate,
    ctx: RequestContext = Depends(require_policy("roles.create")),
    db: Session = Depends(get_db),
):
    return role_service.to_read(role_service.create_role(db, ctx.company_id, data))


@router.patch("/{role_id}", response_model=RoleRead)
def update_role(
    role_id: UUID,
    data: RoleUpdate,
    ctx: RequestContext = Depends(require_policy("roles.update")),
    db: Session = Depends(get_db),
):
    return role_service.to_read(role_service.update_role(db, role_id, ctx.company_id, data))


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: UUID,
    ctx: RequestContext = Depends(require_policy("roles.delete")),
    db: Session = Depends(get_db),
):
    role_service.delete_role(db, role_id, ctx.company_id)
