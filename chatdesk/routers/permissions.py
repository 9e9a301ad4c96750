"""Read-only permission catalog."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_request_context
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.role import PermissionRead
from chatdesk.services import permission_service

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("", response_model=list[PermissionRead])
def list_permissions(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return permission_service.list_permissions(db)


@router.get("/category/{category}", response_model=list[PermissionRead])
def list_permissions_by_category(
    category: str,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return permission_service.list_permissions_by_category(db, category)


@router.get("/{permission_id}", response_model=PermissionRead)
def get_permission(
    permission_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return permission_service.get_permission(db, permission_id)
