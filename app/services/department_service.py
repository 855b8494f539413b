"""
Department service - business logic for department management
"""
import logging
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.core.exceptions import ConflictError, NotFoundError
from app.db.session import rollback_on_error
from app.models.department import Department
from app.schemas.department import DepartmentCreate, DepartmentUpdate
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)


def _ensure_unique_name(db: Session, organization_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Department).filter(
        Department.organization_id == organization_id,
        func.lower(Department.name) == func.lower(name),
    )
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    if query.first():
        raise ConflictError(f"Department with name '{name}' already exists")


def create_department(
    db: Session,
    organization_id: int,
    department_data: DepartmentCreate,
    actor_id: int
) -> Department:
    """
    Create a new department

    Args:
        db: Database session
        organization_id: Tenant the department belongs to
        department_data: Department creation data
        actor_id: ID of the user creating the department

    Returns:
        Created Department instance

    Raises:
        ConflictError: If the name is already used in the organization (case-insensitive)
    """
    with rollback_on_error(db, logger, "create department", organization_id=organization_id):
        _ensure_unique_name(db, organization_id, department_data.name)
        department = Department(
            organization_id=organization_id,
            name=department_data.name,
            active=department_data.active,
        )
        db.add(department)
        db.flush()
        log_audit(
            db,
            actor_id=actor_id,
            organization_id=organization_id,
            action="CREATE",
            entity_type="department",
            entity_id=department.id,
            meta={"name": department.name, "active": department.active},
            commit=False,
        )
        db.commit()
        db.refresh(department)
    logger.info("department created: id=%s organization_id=%s name=%s", department.id, organization_id, department.name)
    return department


def list_departments(
    db: Session,
    organization_id: int,
    skip: int = 0,
    limit: int = 100,
    active_only: Optional[bool] = None
) -> List[Department]:
    """Departments of the organization by name; `active_only` filters on the active flag"""
    query = db.query(Department).filter(Department.organization_id == organization_id)

    if active_only is not None:
        query = query.filter(Department.active == active_only)

    return query.order_by(Department.name).offset(skip).limit(limit).all()


def get_department(db: Session, organization_id: int, department_id: int) -> Department:
    department = db.query(Department).filter(
        Department.id == department_id,
        Department.organization_id == organization_id,
    ).first()
    if department is None:
        raise NotFoundError(f"Department with id {department_id} not found")
    return department


def update_department(
    db: Session,
    organization_id: int,
    department_id: int,
    department_data: DepartmentUpdate,
    actor_id: int
) -> Department:
    """
    Rename or (de)activate a department

    Deactivating keeps current members; new employees can no longer be
    placed in it.
    """
    with rollback_on_error(db, logger, "update department", department_id=department_id):
        department = get_department(db, organization_id, department_id)
        changes = department_data.model_dump(exclude_unset=True)

        if changes.get("name") is not None:
            _ensure_unique_name(db, organization_id, changes["name"], exclude_id=department_id)
            department.name = changes["name"]
        if changes.get("active") is not None:
            department.active = changes["active"]

        log_audit(
            db,
            actor_id=actor_id,
            organization_id=organization_id,
            action="UPDATE",
            entity_type="department",
            entity_id=department.id,
            meta={"name": department.name, "active": department.active, "updated_fields": changes},
            commit=False,
        )
        db.commit()
        db.refresh(department)
    return department
