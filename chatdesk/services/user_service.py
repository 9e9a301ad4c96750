"""Company user management (agents, managers, admins)."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from chatdesk.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from chatdesk.core.security import hash_password
from chatdesk.db.enums import LimitType, SystemRole
from chatdesk.db.models import ChatAssignment, Department, Role, User, UserDepartment
from chatdesk.schemas.user import UserCreate, UserRead, UserUpdate
from chatdesk.services import plan_check_service
from chatdesk.utils.pagination import PaginationParams, paginate_select

logger = logging.getLogger(__name__)


def to_read(user: User) -> UserRead:
    read = UserRead.model_validate(user)
    read.role_name = user.role.name if user.role else None
    read.department_ids = [ud.department_id for ud in user.user_departments]
    return read


def _resolve_role(db: Session, role_id: UUID, company_id: UUID) -> Role:
    """A user's role must be a system role (other than super_admin) or the company's own."""
    role = db.get(Role, role_id)
    if not role:
        raise NotFoundError("Role not found")
    if role.company_id is None:
        if role.name == SystemRole.SUPER_ADMIN.value:
            raise ForbiddenError("Cannot assign the super_admin role")
        return role
    if role.company_id != company_id:
        raise ForbiddenError("Role belongs to another company")
    return role


def _validate_departments(db: Session, department_ids: list[UUID], company_id: UUID) -> list[UUID]:
    unique_ids = list(dict.fromkeys(department_ids))
    if not unique_ids:
        return []
    found = db.execute(
        select(Department.id).where(
            Department.id.in_(unique_ids),
            Department.company_id == company_id,
        )
    ).scalars().all()
    if len(found) != len(unique_ids):
        raise ForbiddenError("One or more departments do not belong to your company")
    return unique_ids


def _email_taken(db: Session, email: str, exclude_id: UUID | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_user(db: Session, company_id: UUID, data: UserCreate) -> User:
    """
    Create a company user.

    Raises:
        ForbiddenError: Plan limit (users, or agents for the agent role) reached
        ConflictError: Email already registered
    """
    plan_check_service.check_limit(db, company_id, LimitType.USERS)
    role = _resolve_role(db, data.role_id, company_id)
    if role.name == SystemRole.AGENT.value:
        plan_check_service.check_limit(db, company_id, LimitType.AGENTS)

    if _email_taken(db, data.email):
        raise ConflictError("Email already registered")
    department_ids = _validate_departments(db, data.department_ids, company_id)

    user = User(
        company_id=company_id,
        role_id=role.id,
        email=data.email.lower(),
        password_hash=hash_password(data.password),
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        phone=data.phone,
        avatar=data.avatar,
    )
    db.add(user)
    db.flush()
    for department_id in department_ids:
        db.add(UserDepartment(user_id=user.id, department_id=department_id))
    db.commit()
    logger.info("Created user %s in company %s", user.id, company_id)
    return get_user(db, user.id, company_id)


def list_users(
    db: Session,
    company_id: UUID,
    pagination: PaginationParams,
    role_id: UUID | None = None,
    is_active: bool | None = None,
) -> tuple[list[User], int]:
    stmt = (
        select(User)
        .where(User.company_id == company_id)
        .options(selectinload(User.role), selectinload(User.user_departments))
    )
    if role_id:
        stmt = stmt.where(User.role_id == role_id)
    if is_active is not None:
        stmt = stmt.where(User.is_active.is_(is_active))
    return paginate_select(db, stmt.order_by(User.created_at.desc()), pagination)


def get_user(db: Session, user_id: UUID, company_id: UUID | None) -> User:
    """
    Load a user; company_id None skips the tenant check (super admin).

    Raises:
        NotFoundError: No such user
        ForbiddenError: User belongs to another company
    """
    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.role), selectinload(User.user_departments))
    ).scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    if company_id is not None and user.company_id != company_id:
        raise ForbiddenError("Access denied")
    return user


def update_user(db: Session, user_id: UUID, company_id: UUID, data: UserUpdate) -> User:
    user = get_user(db, user_id, company_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("email") and changes["email"].lower() != user.email:
        if _email_taken(db, changes["email"], exclude_id=user.id):
            raise ConflictError("Email already registered")
        user.email = changes["email"].lower()

    if changes.get("role_id") and changes["role_id"] != user.role_id:
        role = _resolve_role(db, changes["role_id"], company_id)
        if role.name == SystemRole.AGENT.value and user.is_active:
            plan_check_service.check_limit(db, company_id, LimitType.AGENTS)
        user.role_id = role.id

    if changes.get("is_active") is True and not user.is_active:
        # Reactivation counts against the plan again
        plan_check_service.check_limit(db, company_id, LimitType.USERS)

    for field in ("first_name", "last_name"):
        if changes.get(field):
            setattr(user, field, changes[field].strip())
    for field in ("phone", "avatar"):
        if field in changes:
            setattr(user, field, changes[field])
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]
        if not user.is_active:
            # Deactivation ends live sessions
            user.token_version += 1

    if changes.get("department_ids") is not None:
        department_ids = _validate_departments(db, changes["department_ids"], company_id)
        user.user_departments.clear()
        db.flush()
        for department_id in department_ids:
            user.user_departments.append(UserDepartment(department_id=department_id))

    db.commit()
    db.expire(user)
    return get_user(db, user.id, company_id)


def delete_user(db: Session, user_id: UUID, company_id: UUID, requester_id: UUID) -> None:
    """
    Hard-delete a user with no chat history.

    Raises:
        BadRequestError: Deleting yourself
        ConflictError: User referenced by chat assignments (deactivate instead)
    """
    if user_id == requester_id:
        raise BadRequestError("You cannot delete your own account")
    user = get_user(db, user_id, company_id)
    referenced = db.execute(
        select(func.count(ChatAssignment.id)).where(ChatAssignment.agent_id == user.id)
    ).scalar_one()
    if referenced:
        raise ConflictError("User has chat assignments; deactivate the account instead")
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s from company %s", user_id, company_id)
