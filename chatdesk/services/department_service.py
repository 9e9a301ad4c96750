"""Department management (company-scoped chat routing groups)."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chatdesk.core.errors import ConflictError, ForbiddenError, NotFoundError
from chatdesk.db.enums import LimitType
from chatdesk.db.models import Chat, Department, UserDepartment
from chatdesk.schemas.department import DepartmentCreate, DepartmentRead, DepartmentUpdate
from chatdesk.services import plan_check_service


def to_read(db: Session, department: Department) -> DepartmentRead:
    member_count = db.execute(
        select(func.count(UserDepartment.id)).where(UserDepartment.department_id == department.id)
    ).scalar_one()
    chat_count = db.execute(
        select(func.count(Chat.id)).where(Chat.department_id == department.id)
    ).scalar_one()
    return DepartmentRead(
        id=department.id,
        company_id=department.company_id,
        name=department.name,
        description=department.description,
        is_active=department.is_active,
        created_at=department.created_at,
        member_count=member_count,
        chat_count=chat_count,
    )


def _name_taken(db: Session, company_id: UUID, name: str, exclude_id: UUID | None = None) -> bool:
    stmt = select(Department.id).where(
        Department.company_id == company_id,
        func.lower(Department.name) == name.strip().lower(),
    )
    if exclude_id:
        stmt = stmt.where(Department.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_department(db: Session, company_id: UUID, data: DepartmentCreate) -> Department:
    """
    Raises:
        ForbiddenError: Department limit reached
        ConflictError: Name already used in the company
    """
    plan_check_service.check_limit(db, company_id, LimitType.DEPARTMENTS)
    if _name_taken(db, company_id, data.name):
        raise ConflictError(f"Department '{data.name}' already exists")
    department = Department(
        company_id=company_id,
        name=data.name.strip(),
        description=data.description,
    )
    db.add(department)
    db.commit()
    db.refresh(department)
    return department


def list_departments(
    db: Session,
    company_id: UUID,
    include_inactive: bool = True,
) -> list[Department]:
    query = select(Department).where(Department.company_id == company_id)
    if not include_inactive:
        query = query.where(Department.is_active.is_(True))
    return list(db.execute(query.order_by(Department.name)).scalars().all())


def get_department(db: Session, department_id: UUID, company_id: UUID) -> Department:
    """
    Raises:
        NotFoundError: No such department
        ForbiddenError: Department of another company
    """
    department = db.get(Department, department_id)
    if not department:
        raise NotFoundError("Department not found")
    if department.company_id != company_id:
        raise ForbiddenError("Access denied")
    return department


def update_department(
    db: Session,
    department_id: UUID,
    company_id: UUID,
    data: DepartmentUpdate,
) -> Department:
    department = get_department(db, department_id, company_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("name") and changes["name"].strip() != department.name:
        if _name_taken(db, company_id, changes["name"], exclude_id=department.id):
            raise ConflictError(f"Department '{changes['name']}' already exists")
        department.name = changes["name"].strip()
    if "description" in changes:
        department.description = changes["description"]
    if changes.get("is_active") is not None:
        if changes["is_active"] and not department.is_active:
            plan_check_service.check_limit(db, company_id, LimitType.DEPARTMENTS)
        department.is_active = changes["is_active"]

    db.commit()
    db.refresh(department)
    return department


def delete_department(db: Session, department_id: UUID, company_id: UUID) -> None:
    """
    Raises:
        ConflictError: Chats still reference the department
    """
    department = get_department(db, department_id, company_id)
    chats = db.execute(
        select(func.count(Chat.id)).where(Chat.department_id == department.id)
    ).scalar_one()
    if chats:
        raise ConflictError(f"Department has {chats} chat(s); deactivate it instead")
    db.delete(department)
    db.commit()
