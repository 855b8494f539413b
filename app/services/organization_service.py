"""
Organization service - tenant profile and headline statistics
"""
import logging
from datetime import date
from typing import Any, Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.core.exceptions import ConflictError, NotFoundError
from app.db.session import rollback_on_error
from app.models.department import Department
from app.models.employee import Employee, Role
from app.models.leave import LeaveRequest, LeaveStatus, LeaveType
from app.models.organization import Organization
from app.schemas.organization import OrganizationUpdate
from app.services.audit_service import log_audit
from app.utils.datetime_utils import today_utc

logger = logging.getLogger(__name__)


def get_organization(db: Session, organization_id: int) -> Organization:
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if organization is None:
        raise NotFoundError("Organization not found")
    return organization


def organization_detail(db: Session, organization_id: int) -> Dict[str, Any]:
    """Organization fields plus active employee, department and leave type counts"""
    organization = get_organization(db, organization_id)
    return {
        "id": organization.id,
        "name": organization.name,
        "domain": organization.domain,
        "created_at": organization.created_at,
        "updated_at": organization.updated_at,
        "counts": {
            "employees": db.query(Employee).filter(
                Employee.organization_id == organization_id,
                Employee.active == True,  # noqa: E712
            ).count(),
            "departments": db.query(Department).filter(Department.organization_id == organization_id).count(),
            "leave_types": db.query(LeaveType).filter(LeaveType.organization_id == organization_id).count(),
        },
    }


def update_organization(
    db: Session,
    organization_id: int,
    data: OrganizationUpdate,
    actor_id: int
) -> Dict[str, Any]:
    """
    Rename the organization or change its domain

    Raises:
        ConflictError: another organization already uses the domain
    """
    with rollback_on_error(db, logger, "update organization", organization_id=organization_id):
        organization = get_organization(db, organization_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("name") is not None:
            organization.name = changes["name"]
        if "domain" in changes:
            domain = changes["domain"]
            if domain is not None:
                taken = db.query(Organization).filter(
                    Organization.domain == domain,
                    Organization.id != organization_id,
                ).first()
                if taken:
                    raise ConflictError("An organization with this domain already exists")
            organization.domain = domain

        log_audit(
            db,
            actor_id=actor_id,
            organization_id=organization_id,
            action="UPDATE",
            entity_type="organization",
            entity_id=organization_id,
            meta=changes,
            commit=False,
        )
        db.commit()

    logger.info("organization updated: id=%s fields=%s", organization_id, sorted(changes))
    return organization_detail(db, organization_id)


def _period_counts() -> Dict[str, int]:
    return {"submitted": 0, "approved": 0, "rejected": 0}


def _count_into(bucket: Dict[str, int], status: str) -> None:
    bucket["submitted"] += 1
    if status == LeaveStatus.APPROVED.value:
        bucket["approved"] += 1
    elif status == LeaveStatus.REJECTED.value:
        bucket["rejected"] += 1


def get_organization_stats(
    db: Session,
    organization_id: int,
    include_inactive: bool = False,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Headcount and leave activity of the organization.

    Inactive employees only count when `include_inactive` is set. "this
    month" and "this year" group requests by submission date; days taken
    are approved days of requests starting this year.
    """
    get_organization(db, organization_id)
    today = today or today_utc()

    employee_query = db.query(Employee.role, Employee.active, Employee.department_id).filter(
        Employee.organization_id == organization_id
    )
    if not include_inactive:
        employee_query = employee_query.filter(Employee.active == True)  # noqa: E712
    people = employee_query.all()

    by_role = {role.value: 0 for role in Role}
    per_department: Dict[int, int] = {}
    for role, _, department_id in people:
        by_role[role] = by_role.get(role, 0) + 1
        if department_id is not None:
            per_department[department_id] = per_department.get(department_id, 0) + 1
    active = sum(1 for _, is_active, _ in people if is_active)

    departments = db.query(Department).filter(
        Department.organization_id == organization_id
    ).order_by(Department.name).all()

    requests = {"total": 0, "pending": 0, "approved": 0, "rejected": 0, "cancelled": 0}
    this_month = _period_counts()
    this_year = dict(_period_counts(), total_days_taken=0)
    rows = (
        db.query(LeaveRequest.status, LeaveRequest.created_at, LeaveRequest.start_date, LeaveRequest.total_days)
        .join(Employee, LeaveRequest.employee_id == Employee.id)
        .filter(Employee.organization_id == organization_id)
        .all()
    )
    for status, created_at, start_date, total_days in rows:
        requests["total"] += 1
        requests[status.lower()] = requests.get(status.lower(), 0) + 1
        if created_at.year == today.year:
            _count_into(this_year, status)
            if created_at.month == today.month:
                _count_into(this_month, status)
        if status == LeaveStatus.APPROVED.value and start_date.year == today.year:
            this_year["total_days_taken"] += total_days

    return {
        "employees": {
            "total": len(people),
            "active": active,
            "inactive": len(people) - active,
            "by_role": by_role,
            "by_department": [
                {
                    "department_id": department.id,
                    "department_name": department.name,
                    "count": per_department.get(department.id, 0),
                }
                for department in departments
            ],
        },
        "departments": {
            "total": len(departments),
            "active": sum(1 for department in departments if department.active),
        },
        "leaves": {
            "types": db.query(LeaveType).filter(LeaveType.organization_id == organization_id).count(),
            "requests": requests,
            "this_month": this_month,
            "this_year": this_year,
        },
    }
