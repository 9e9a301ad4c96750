"""User (agent) management endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, require_policy
from chatdesk.schemas.auth import RequestContext
from chatdesk.schemas.user import UserCreate, UserListResponse, UserRead, UserUpdate
from chatdesk.services import user_service
from chatdesk.utils.pagination import PaginationParams, get_pagination, page_payload

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    ctx: RequestContext = Depends(require_policy("users.create")),
    db: Session = Depends(get_db),
):
    """Create a user in the caller's company, subject to plan limits."""
    return user_service.to_read(user_service.create_user(db, ctx.company_id, data))


@router.get("", response_model=UserListResponse)
def list_users(
    role_id: UUID | None = Query(None),
    is_active: bool | None = Query(None),
    pagination: PaginationParams = Depends(get_pagination),
    ctx: RequestContext = Depends(require_policy("users.list")),
    db: Session = Depends(get_db),
):
    users, total = user_service.list_users(
        db, ctx.company_id, pagination, role_id=role_id, is_active=is_active
    )
    return page_payload([user_service.to_read(u) for u in users], total, pagination)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    ctx: RequestContext = Depends(require_policy("users.get")),
    db: Session = Depends(get_db),
):
    return user_service.to_read(user_service.get_user(db, user_id, ctx.company_id))


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: UUID,
    data: UserUpdate,
    ctx: RequestContext = Depends(require_policy("users.update")),
    db: Session = Depends(get_db),
):
    return user_service.to_read(user_service.update_user(db, user_id, ctx.company_id, data))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: UUID,
    ctx: RequestContext = Depends(require_policy("users.delete")),
    db: Session = Depends(get_db),
):
    user_service.delete_user(db, user_id, ctx.company_id, requester_id=ctx.user_id)
