"""
Employee service - business logic for employee management

Every lookup is scoped to the caller's organization; employees of other
tenants are reported as not found.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from app.core.security import hash_password, validate_password
from app.db.session import rollback_on_error
from app.models.department import Department
from app.models.employee import Employee, Role
from app.models.organization import Organization
from app.schemas.employee import EmployeeCreate, EmployeeUpdate
from app.services.audit_service import log_audit
from app.services.leave_balance_service import LeaveBalanceLedger
from app.utils.datetime_utils import today_utc
from app.utils.roles import role_at_least, role_name, role_rank

logger = logging.getLogger(__name__)


def _get_actor(db: Session, organization_id: int, actor_id: int) -> Employee:
    actor = db.query(Employee).filter(
        Employee.id == actor_id,
        Employee.organization_id == organization_id,
        Employee.active == True,  # noqa: E712
    ).first()
    if actor is None or not role_at_least(actor.role, Role.HR_ADMIN):
        raise ForbiddenError("Only HR admins can manage employees")
    return actor


def _check_role_grant(actor: Employee, role) -> None:
    # Nobody hands out a role above their own
    if role_rank(role) > role_rank(actor.role):
        raise ForbiddenError(f"{role_name(actor.role)} cannot assign the {role_name(role)} role")


def _check_can_manage(actor: Employee, employee: Employee) -> None:
    if role_rank(employee.role) > role_rank(actor.role):
        raise ForbiddenError(f"{role_name(actor.role)} cannot manage a {role_name(employee.role)}")


def _ensure_unique_email(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Employee).filter(func.lower(Employee.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first():
        raise ConflictError(f"Employee with email '{email}' already exists")


def _ensure_unique_number(db: Session, organization_id: int, number: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Employee).filter(
        Employee.organization_id == organization_id,
        Employee.employee_number == number,
    )
    if exclude_id is not None:
        query = query.filter(Employee.id != exclude_id)
    if query.first():
        raise ConflictError(f"Employee number '{number}' is already in use")


def _get_active_department(db: Session, organization_id: int, department_id: int) -> Department:
    department = db.query(Department).filter(
        Department.id == department_id,
        Department.organization_id == organization_id,
    ).first()
    if department is None:
        raise ValidationError(f"Department with id {department_id} not found")
    if not department.active:
        raise ValidationError(f"Department with id {department_id} is inactive")
    return department


def _hash_new_password(password: str) -> str:
    try:
        return hash_password(validate_password(password))
    except ValueError as e:
        raise ValidationError(str(e))


def generate_employee_number(db: Session, organization_id: int) -> str:
    """
    Next number of the form PREFIX### where PREFIX is the letters among the
    first three characters of the organization name (EMP when there are none).
    """
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    name = organization.name if organization else ""
    prefix = "".join(ch for ch in name[:3].upper() if ch.isascii() and ch.isalpha()) or "EMP"

    highest = 0
    numbers = db.query(Employee.employee_number).filter(
        Employee.organization_id == organization_id,
        Employee.employee_number.like(f"{prefix}%"),
    ).all()
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:03d}"


def create_employee(
    db: Session,
    organization_id: int,
    employee_data: EmployeeCreate,
    actor_id: int
) -> Employee:
    """
    Create a new employee

    Args:
        db: Database session
        organization_id: Tenant of the new employee
        employee_data: Employee creation data
        actor_id: ID of the HR admin creating the employee

    Returns:
        Created Employee instance

    Raises:
        ForbiddenError: actor below HR_ADMIN, or granting a role above their own
        ConflictError: email or employee number already taken
        ValidationError: department unknown or inactive, or password rejected
    """
    with rollback_on_error(db, logger, "create employee", organization_id=organization_id):
        actor = _get_actor(db, organization_id, actor_id)
        _check_role_grant(actor, employee_data.role)
        _ensure_unique_email(db, employee_data.email)

        if employee_data.department_id is not None:
            _get_active_department(db, organization_id, employee_data.department_id)

        employee_number = (employee_data.employee_number or "").strip()
        if employee_number:
            _ensure_unique_number(db, organization_id, employee_number)
        else:
            employee_number = generate_employee_number(db, organization_id)

        password_hash = None
        if employee_data.password:
            password_hash = _hash_new_password(employee_data.password)

        employee = Employee(
            organization_id=organization_id,
            department_id=employee_data.department_id,
            employee_number=employee_number,
            email=employee_data.email,
            first_name=employee_data.first_name,
            last_name=employee_data.last_name,
            role=role_name(employee_data.role),
            password_hash=password_hash,
            active=employee_data.active,
        )
        db.add(employee)
        db.flush()
        log_audit(
            db,
            actor_id=actor.id,
            organization_id=organization_id,
            action="CREATE",
            entity_type="employee",
            entity_id=employee.id,
            meta={
                "employee_number": employee.employee_number,
                "email": employee.email,
                "role": employee.role,
                "department_id": employee.department_id,
            },
            commit=False,
        )
        db.commit()
        db.refresh(employee)

    logger.info(
        "employee created: id=%s organization_id=%s employee_number=%s login_enabled=%s",
        employee.id, organization_id, employee.employee_number, password_hash is not None,
    )
    return employee


def list_employees(
    db: Session,
    organization_id: int,
    search: Optional[str] = None,
    department_id: Optional[int] = None,
    role: Optional[Role] = None,
    active_only: Optional[bool] = None,
    page: int = 1,
    limit: int = 20
) -> Tuple[List[Employee], int]:
    """
    Paginated employees, active ones first, newest first. `search` matches
    name, email or employee number, case-insensitive. Returns (items, total).
    """
    query = (
        db.query(Employee)
        .options(joinedload(Employee.department))
        .filter(Employee.organization_id == organization_id)
    )

    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(Employee.first_name).like(pattern),
            func.lower(Employee.last_name).like(pattern),
            func.lower(Employee.email).like(pattern),
            func.lower(Employee.employee_number).like(pattern),
        ))
    if department_id is not None:
        query = query.filter(Employee.department_id == department_id)
    if role is not None:
        query = query.filter(Employee.role == role_name(role))
    if active_only is not None:
        query = query.filter(Employee.active == active_only)

    total = query.count()
    items = (
        query.order_by(Employee.active.desc(), Employee.created_at.desc(), Employee.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def get_employee(db: Session, organization_id: int, employee_id: int) -> Employee:
    """Get an employee of the organization by ID"""
    employee = (
        db.query(Employee)
        .options(joinedload(Employee.department))
        .filter(Employee.id == employee_id, Employee.organization_id == organization_id)
        .first()
    )
    if employee is None:
        raise NotFoundError(f"Employee with id {employee_id} not found")
    return employee


def update_employee(
    db: Session,
    organization_id: int,
    employee_id: int,
    employee_data: EmployeeUpdate,
    actor_id: int
) -> Employee:
    """
    Update an employee

    Only the fields sent are changed. Actors cannot change their own role
    or active flag, and cannot touch anyone ranked above them.
    """
    with rollback_on_error(db, logger, "update employee", employee_id=employee_id):
        actor = _get_actor(db, organization_id, actor_id)
        employee = get_employee(db, organization_id, employee_id)
        _check_can_manage(actor, employee)

        update_dict = employee_data.model_dump(exclude_unset=True)

        new_role = update_dict.get("role")
        if employee.id == actor.id and (
            (new_role is not None and role_name(new_role) != employee.role)
            or update_dict.get("active") is False
        ):
            raise ValidationError("You cannot change your own role or deactivate yourself")

        if update_dict.get("email") is not None:
            _ensure_unique_email(db, update_dict["email"], exclude_id=employee.id)
            employee.email = update_dict["email"]

        if "employee_number" in update_dict:
            number = (update_dict["employee_number"] or "").strip()
            if not number:
                raise ValidationError("employee_number cannot be blank")
            _ensure_unique_number(db, organization_id, number, exclude_id=employee.id)
            employee.employee_number = number

        if "department_id" in update_dict:
            if update_dict["department_id"] is not None:
                _get_active_department(db, organization_id, update_dict["department_id"])
            employee.department_id = update_dict["department_id"]

        if new_role is not None:
            _check_role_grant(actor, new_role)
            employee.role = role_name(new_role)

        if update_dict.get("first_name") is not None:
            employee.first_name = update_dict["first_name"]
        if update_dict.get("last_name") is not None:
            employee.last_name = update_dict["last_name"]
        if update_dict.get("active") is not None:
            employee.active = update_dict["active"]

        log_audit(
            db,
            actor_id=actor.id,
            organization_id=organization_id,
            action="UPDATE",
            entity_type="employee",
            entity_id=employee.id,
            meta={"employee_number": employee.employee_number, "updated_fields": update_dict},
            commit=False,
        )
        db.commit()
        db.refresh(employee)
    return employee


def deactivate_employee(db: Session, organization_id: int, employee_id: int, actor_id: int) -> Employee:
    """
    Soft delete: the row and its leave history stay, login is refused.
    Deactivating an inactive employee is a no-op.
    """
    with rollback_on_error(db, logger, "deactivate employee", employee_id=employee_id):
        actor = _get_actor(db, organization_id, actor_id)
        employee = get_employee(db, organization_id, employee_id)
        _check_can_manage(actor, employee)
        if employee.id == actor.id:
            raise ValidationError("You cannot deactivate yourself")
        if not employee.active:
            return employee

        employee.active = False
        log_audit(
            db,
            actor_id=actor.id,
            organization_id=organization_id,
            action="DEACTIVATE",
            entity_type="employee",
            entity_id=employee.id,
            meta={"employee_number": employee.employee_number},
            commit=False,
        )
        db.commit()
        db.refresh(employee)

    logger.info("employee deactivated: id=%s organization_id=%s", employee_id, organization_id)
    return employee


def reset_password(
    db: Session,
    organization_id: int,
    employee_id: int,
    new_password: str,
    actor_id: int
) -> Employee:
    """Set a new password for an employee; also enables login for employees created without one"""
    password_hash = _hash_new_password(new_password)
    with rollback_on_error(db, logger, "reset password", employee_id=employee_id):
        actor = _get_actor(db, organization_id, actor_id)
        employee = get_employee(db, organization_id, employee_id)
        _check_can_manage(actor, employee)

        employee.password_hash = password_hash
        log_audit(
            db,
            actor_id=actor.id,
            organization_id=organization_id,
            action="UPDATE",
            entity_type="employee",
            entity_id=employee.id,
            meta={"action": "password_reset"},
            commit=False,
        )
        db.commit()
        db.refresh(employee)
    return employee


def get_employee_with_balances(
    db: Session,
    organization_id: int,
    employee_id: int,
    year: Optional[int] = None
) -> Dict[str, Any]:
    """Employee plus their balances for `year` (default: current year), by leave type name"""
    year = year or today_utc().year
    employee = get_employee(db, organization_id, employee_id)
    balances = LeaveBalanceLedger(db, logger).list_for_employee(organization_id, employee_id, year=year)
    return {
        "employee": employee,
        "year": year,
        "balances": sorted(balances, key=lambda b: b.leave_type.name.lower()),
    }
