"""
Leave type service - organization-scoped leave categories
"""
import logging
from typing import List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from app.core.exceptions import ConflictError, NotFoundError
from app.db.session import rollback_on_error
from app.models.leave import LeaveBalance, LeaveRequest, LeaveType
from app.schemas.leave_type import LeaveTypeCreate, LeaveTypeUpdate
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)


def _ensure_unique_name(db: Session, organization_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    # Case-insensitive, like department names
    query = db.query(LeaveType).filter(
        LeaveType.organization_id == organization_id,
        func.lower(LeaveType.name) == func.lower(name),
    )
    if exclude_id is not None:
        query = query.filter(LeaveType.id != exclude_id)
    if query.first():
        raise ConflictError(f"Leave type with name '{name}' already exists")


def create_leave_type(
    db: Session,
    organization_id: int,
    data: LeaveTypeCreate,
    actor_id: int
) -> LeaveType:
    """
    Create a leave type in the organization

    Raises:
        ConflictError: if the name is already used in the organization
    """
    with rollback_on_error(db, logger, "create leave type", organization_id=organization_id):
        _ensure_unique_name(db, organization_id, data.name)
        leave_type = LeaveType(
            organization_id=organization_id,
            name=data.name,
            description=data.description,
            max_days_per_year=data.max_days_per_year,
        )
        db.add(leave_type)
        db.flush()
        log_audit(
            db,
            actor_id=actor_id,
            organization_id=organization_id,
            action="CREATE",
            entity_type="leave_type",
            entity_id=leave_type.id,
            meta={"name": leave_type.name, "max_days_per_year": leave_type.max_days_per_year},
            commit=False,
        )
        db.commit()
        db.refresh(leave_type)
    logger.info("leave type created: id=%s organization_id=%s name=%s", leave_type.id, organization_id, leave_type.name)
    return leave_type


def list_leave_types(
    db: Session,
    organization_id: int,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10
) -> Tuple[List[LeaveType], int]:
    """Paginated list; `search` matches name or description, case-insensitive."""
    query = db.query(LeaveType).filter(LeaveType.organization_id == organization_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(LeaveType.name).like(pattern),
            func.lower(LeaveType.description).like(pattern),
        ))
    total = query.count()
    items = query.order_by(LeaveType.name).offset((page - 1) * limit).limit(limit).all()
    return items, total


def list_leave_types_simple(db: Session, organization_id: int) -> List[LeaveType]:
    """All leave types of the organization, for dropdowns"""
    return db.query(LeaveType).filter(
        LeaveType.organization_id == organization_id
    ).order_by(LeaveType.name).all()


def get_leave_type(db: Session, organization_id: int, leave_type_id: int) -> LeaveType:
    leave_type = db.query(LeaveType).filter(
        LeaveType.id == leave_type_id,
        LeaveType.organization_id == organization_id,
    ).first()
    if leave_type is None:
        raise NotFoundError(f"Leave type with id {leave_type_id} not found")
    return leave_type


def update_leave_type(
    db: Session,
    organization_id: int,
    leave_type_id: int,
    data: LeaveTypeUpdate,
    actor_id: int
) -> LeaveType:
    with rollback_on_error(db, logger, "update leave type", leave_type_id=leave_type_id):
        leave_type = get_leave_type(db, organization_id, leave_type_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is not None:
            _ensure_unique_name(db, organization_id, changes["name"], exclude_id=leave_type_id)
            leave_type.name = changes["name"]
        if "description" in changes:
            leave_type.description = changes["description"]
        if changes.get("max_days_per_year") is not None:
            leave_type.max_days_per_year = changes["max_days_per_year"]
        log_audit(
            db,
            actor_id=actor_id,
            organization_id=organization_id,
            action="UPDATE",
            entity_type="leave_type",
            entity_id=leave_type.id,
            meta=changes,
            commit=False,
        )
        db.commit()
        db.refresh(leave_type)
    return leave_type


def delete_leave_type(db: Session, organization_id: int, leave_type_id: int, actor_id: int) -> None:
    """
    Delete a leave type that nothing references yet

    Raises:
        ConflictError: if any balance or leave request uses it
    """
    with rollback_on_error(db, logger, "delete leave type", leave_type_id=leave_type_id):
        leave_type = get_leave_type(db, organization_id, leave_type_id)
        in_use = (
            db.query(LeaveBalance.id).filter(LeaveBalance.leave_type_id == leave_type_id).first()
            or db.query(LeaveRequest.id).filter(LeaveRequest.leave_type_id == leave_type_id).first()
        )
        if in_use:
            raise ConflictError(
                f"Leave type '{leave_type.name}' is in use by balances or leave requests and cannot be deleted"
            )
        log_audit(
            db,
            actor_id=actor_id,
            organization_id=organization_id,
            action="DELETE",
            entity_type="leave_type",
            entity_id=leave_type.id,
            meta={"name": leave_type.name},
            commit=False,
        )
        db.delete(leave_type)
        db.commit()
    logger.info("leave type deleted: id=%s organization_id=%s", leave_type_id, organization_id)
