"""
Leave calendar - approved leave as dated events for the caller or the organization
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from app.core.exceptions import NotFoundError, ValidationError
from app.models.department import Department
from app.models.employee import Employee
from app.models.leave import LeaveRequest, LeaveStatus, LeaveType

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    LeaveStatus.APPROVED.value: "#22c55e",   # green
    LeaveStatus.PENDING.value: "#f59e0b",    # amber
    LeaveStatus.REJECTED.value: "#ef4444",   # red
    LeaveStatus.CANCELLED.value: "#6b7280",  # gray
}
DEFAULT_COLOR = "#3b82f6"


def _approved_in_window(db: Session, start_date: Optional[date], end_date: Optional[date]):
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")

    query = (
        db.query(LeaveRequest, Employee, LeaveType, Department)
        .join(Employee, LeaveRequest.employee_id == Employee.id)
        .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
        .outerjoin(Department, Employee.department_id == Department.id)
        .filter(LeaveRequest.status == LeaveStatus.APPROVED.value)
    )
    # Any leave touching the window, so multi-week leave shows in every month it spans
    if start_date is not None:
        query = query.filter(LeaveRequest.end_date >= start_date)
    if end_date is not None:
        query = query.filter(LeaveRequest.start_date <= end_date)
    return query


def _to_event(leave: LeaveRequest, employee: Employee, leave_type: LeaveType,
              department: Optional[Department], team: bool) -> Dict[str, Any]:
    return {
        "id": leave.id,
        "title": f"{employee.full_name} - {leave_type.name}" if team else leave_type.name,
        "start": leave.start_date,
        "end": leave.end_date,
        "status": leave.status,
        "employee_id": employee.id,
        "employee_name": employee.full_name,
        "leave_type_id": leave_type.id,
        "leave_type": leave_type.name,
        "color": STATUS_COLORS.get(leave.status, DEFAULT_COLOR),
        # Reasons are personal; team views leave them out
        "reason": None if team else leave.reason,
        "department": department.name if department else None,
    }


def get_self_leave_events(
    db: Session,
    employee_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[Dict[str, Any]]:
    """The caller's approved leave overlapping the window, earliest first"""
    rows = (
        _approved_in_window(db, start_date, end_date)
        .filter(LeaveRequest.employee_id == employee_id)
        .order_by(LeaveRequest.start_date, LeaveRequest.id)
        .all()
    )
    events = [_to_event(*row, team=False) for row in rows]
    logger.info("self leave events: employee_id=%s count=%s", employee_id, len(events))
    return events


def get_team_leave_events(
    db: Session,
    organization_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    department_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Approved leave of the organization's active employees, optionally one department"""
    query = _approved_in_window(db, start_date, end_date).filter(
        Employee.organization_id == organization_id,
        Employee.active == True,  # noqa: E712
    )
    if department_id is not None:
        department = db.query(Department).filter(
            Department.id == department_id,
            Department.organization_id == organization_id,
        ).first()
        if department is None:
            raise NotFoundError(f"Department with id {department_id} not found")
        query = query.filter(Employee.department_id == department_id)

    rows = query.order_by(LeaveRequest.start_date, LeaveRequest.id).all()
    events = [_to_event(*row, team=True) for row in rows]
    logger.info(
        "team leave events: organization_id=%s department_id=%s count=%s",
        organization_id, department_id, len(events),
    )
    return events
