"""
Report service - leave statistics and export rows

Records are loaded once per call into LeaveRecord tuples; every section of
the report is a pure fold over that sequence.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.orm import Session
from app.core.exceptions import NotFoundError, ValidationError
from app.models.department import Department
from app.models.employee import Employee, Role
from app.models.leave import LeaveRequest, LeaveStatus, LeaveType
from app.utils.datetime_utils import today_utc
from app.utils.roles import role_at_least

TYPE_COLORS = (
    "#3b82f6",  # blue
    "#10b981",  # green
    "#f59e0b",  # amber
    "#8b5cf6",  # violet
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#f97316",  # orange
    "#6366f1",  # indigo
)

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

STATUS_ORDER = (
    LeaveStatus.PENDING.value,
    LeaveStatus.APPROVED.value,
    LeaveStatus.REJECTED.value,
    LeaveStatus.CANCELLED.value,
)

TOP_EMPLOYEES_LIMIT = 10

EXPORT_HEADERS = [
    "request_id",
    "employee_number",
    "employee_name",
    "department",
    "leave_type",
    "start_date",
    "end_date",
    "total_days",
    "status",
]


@dataclass(frozen=True)
class LeaveRecord:
    request_id: int
    employee_id: int
    employee_name: str
    employee_number: Optional[str]
    department_id: Optional[int]
    department_name: Optional[str]
    leave_type_id: int
    leave_type_name: str
    status: str
    start_date: date
    end_date: date
    total_days: int

    @property
    def is_approved(self) -> bool:
        return self.status == LeaveStatus.APPROVED.value


@dataclass
class ReportData:
    year: int
    start_date: date
    end_date: date
    stats: Dict[str, Any]
    leave_by_type: List[Dict[str, Any]] = field(default_factory=list)
    leave_by_status: List[Dict[str, Any]] = field(default_factory=list)
    leave_by_month: List[Dict[str, Any]] = field(default_factory=list)
    leave_by_department: List[Dict[str, Any]] = field(default_factory=list)
    top_employees_by_leave: List[Dict[str, Any]] = field(default_factory=list)


def round_half_up(value: float, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _ratio(numerator: int, denominator: int) -> float:
    if not denominator:
        return 0.0
    return round_half_up(numerator / denominator)


# ----------------------------------------------------------------------
# Folds
# ----------------------------------------------------------------------

def compute_stats(records: Sequence[LeaveRecord]) -> Dict[str, Any]:
    employees = {r.employee_id for r in records}
    by_status = {s: 0 for s in STATUS_ORDER}
    for r in records:
        by_status[r.status] = by_status.get(r.status, 0) + 1
    approved_days = sum(r.total_days for r in records if r.is_approved)
    return {
        "total_employees": len(employees),
        "total_leave_requests": len(records),
        "pending_requests": by_status[LeaveStatus.PENDING.value],
        "approved_requests": by_status[LeaveStatus.APPROVED.value],
        "rejected_requests": by_status[LeaveStatus.REJECTED.value],
        "cancelled_requests": by_status[LeaveStatus.CANCELLED.value],
        "total_leave_days_taken": approved_days,
        "average_leave_days_per_employee": _ratio(approved_days, len(employees)),
    }


def leave_by_type(records: Sequence[LeaveRecord]) -> List[Dict[str, Any]]:
    """Per leave type, colored in first-seen order, busiest type first."""
    by_type: Dict[int, Dict[str, Any]] = {}
    for r in records:
        entry = by_type.get(r.leave_type_id)
        if entry is None:
            entry = by_type[r.leave_type_id] = {
                "leave_type_id": r.leave_type_id,
                "leave_type_name": r.leave_type_name,
                "total_requests": 0,
                "approved_requests": 0,
                "total_days": 0,
                "color": TYPE_COLORS[len(by_type) % len(TYPE_COLORS)],
            }
        entry["total_requests"] += 1
        if r.is_approved:
            entry["approved_requests"] += 1
            entry["total_days"] += r.total_days
    return sorted(by_type.values(), key=lambda e: e["total_requests"], reverse=True)


def leave_by_status(records: Sequence[LeaveRecord]) -> List[Dict[str, Any]]:
    total = len(records)
    counts = {s: 0 for s in STATUS_ORDER}
    for r in records:
        counts[r.status] = counts.get(r.status, 0) + 1
    return [
        {
            "status": status,
            "count": count,
            "percentage": round_half_up(count / total * 100),
        }
        for status, count in counts.items()
        if count > 0
    ]


def leave_by_month(records: Sequence[LeaveRecord], year: int) -> List[Dict[str, Any]]:
    """Twelve zero-filled buckets keyed on the start month."""
    months = [
        {
            "month": name,
            "year": year,
            "total_requests": 0,
            "approved_requests": 0,
            "rejected_requests": 0,
            "pending_requests": 0,
            "total_days": 0,
        }
        for name in MONTH_NAMES
    ]
    for r in records:
        bucket = months[r.start_date.month - 1]
        bucket["total_requests"] += 1
        if r.is_approved:
            bucket["approved_requests"] += 1
            bucket["total_days"] += r.total_days
        elif r.status == LeaveStatus.REJECTED.value:
            bucket["rejected_requests"] += 1
        elif r.status == LeaveStatus.PENDING.value:
            bucket["pending_requests"] += 1
    return months


def leave_by_department(
    records: Sequence[LeaveRecord],
    departments: Sequence[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """
    `departments` carries id, name and active headcount. Departments
    without employees are dropped; the rest are ordered by approved days.
    """
    rows = {
        d["department_id"]: {
            "department_id": d["department_id"],
            "department_name": d["department_name"],
            "total_employees": d["total_employees"],
            "total_requests": 0,
            "total_days": 0,
            "average_days_per_employee": 0.0,
        }
        for d in departments
        if d["total_employees"] > 0
    }
    for r in records:
        row = rows.get(r.department_id)
        if row is None:
            continue
        row["total_requests"] += 1
        if r.is_approved:
            row["total_days"] += r.total_days
    for row in rows.values():
        row["average_days_per_employee"] = _ratio(row["total_days"], row["total_employees"])
    return sorted(rows.values(), key=lambda row: row["total_days"], reverse=True)


def top_employees_by_leave(records: Sequence[LeaveRecord], limit: int = TOP_EMPLOYEES_LIMIT) -> List[Dict[str, Any]]:
    """
    Employees with the most approved days. Ties keep first-seen order
    (sorted() is stable).
    """
    by_employee: Dict[int, Dict[str, Any]] = {}
    for r in records:
        if not r.is_approved:
            continue
        entry = by_employee.get(r.employee_id)
        if entry is None:
            entry = by_employee[r.employee_id] = {
                "employee_id": r.employee_id,
                "employee_name": r.employee_name,
                "employee_number": r.employee_number,
                "department_name": r.department_name,
                "total_requests": 0,
                "total_days": 0,
                "leave_types": [],
            }
        entry["total_requests"] += 1
        entry["total_days"] += r.total_days
        if r.leave_type_name not in entry["leave_types"]:
            entry["leave_types"].append(r.leave_type_name)
    ranked = sorted(by_employee.values(), key=lambda e: e["total_days"], reverse=True)
    return ranked[:limit]


# ----------------------------------------------------------------------
# Aggregator
# ----------------------------------------------------------------------

class ReportAggregator:
    """Read-only leave reports scoped by the viewer's role."""

    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def _get_viewer(self, employee_id: int, organization_id: int) -> Employee:
        viewer = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.organization_id == organization_id,
        ).first()
        if viewer is None:
            raise NotFoundError(f"Employee with id {employee_id} not found")
        return viewer

    @staticmethod
    def resolve_window(year: Optional[int], start_date: Optional[date], end_date: Optional[date]):
        """
        (year, window_start, window_end) for a report. Without `year` the
        dates pick it; the month breakdown only covers one calendar year,
        so the window must stay inside it.
        """
        if year is None:
            year = (start_date or end_date or today_utc()).year
        window_start = start_date or date(year, 1, 1)
        window_end = end_date or date(year, 12, 31)
        if window_end < window_start:
            raise ValidationError("end_date must be on or after start_date")
        if window_start.year != year or window_end.year != year:
            raise ValidationError(
                "Report window must fall within a single calendar year",
                details={
                    "year": year,
                    "start_date": window_start.isoformat(),
                    "end_date": window_end.isoformat(),
                },
            )
        return year, window_start, window_end

    def _scoped_query(self, viewer: Employee, role, department_id: Optional[int], leave_type_id: Optional[int]):
        query = (
            self.db.query(LeaveRequest, Employee, LeaveType, Department)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .outerjoin(Department, Employee.department_id == Department.id)
            .filter(Employee.organization_id == viewer.organization_id)
        )

        # Role scope first; filters below can only narrow it
        if role_at_least(role, Role.HR_ADMIN):
            pass
        elif role_at_least(role, Role.MANAGER) and viewer.department_id is not None:
            query = query.filter(
                Employee.department_id == viewer.department_id,
                Employee.active == True,  # noqa: E712
            )
        else:
            query = query.filter(LeaveRequest.employee_id == viewer.id)

        if department_id is not None:
            query = query.filter(Employee.department_id == department_id)
        if leave_type_id is not None:
            query = query.filter(LeaveRequest.leave_type_id == leave_type_id)
        return query

    def load_records(
        self,
        employee_id: int,
        organization_id: int,
        role,
        year: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        department_id: Optional[int] = None,
        leave_type_id: Optional[int] = None,
    ) -> List[LeaveRecord]:
        """Leave requests visible to the viewer that fall entirely inside the window."""
        viewer = self._get_viewer(employee_id, organization_id)
        _, window_start, window_end = self.resolve_window(year, start_date, end_date)
        query = self._scoped_query(viewer, role, department_id, leave_type_id).filter(
            LeaveRequest.start_date >= window_start,
            LeaveRequest.end_date <= window_end,
        )
        rows = query.order_by(LeaveRequest.start_date, LeaveRequest.id).all()
        return [
            LeaveRecord(
                request_id=leave.id,
                employee_id=employee.id,
                employee_name=employee.full_name,
                employee_number=employee.employee_number,
                department_id=department.id if department else None,
                department_name=department.name if department else None,
                leave_type_id=leave_type.id,
                leave_type_name=leave_type.name,
                status=leave.status,
                start_date=leave.start_date,
                end_date=leave.end_date,
                total_days=leave.total_days,
            )
            for leave, employee, leave_type, department in rows
        ]

    def _department_headcounts(self, viewer: Employee, role, department_id: Optional[int]) -> List[Dict[str, Any]]:
        query = self.db.query(Department).filter(Department.organization_id == viewer.organization_id)
        if not role_at_least(role, Role.HR_ADMIN):
            # Managers and employees only see their own department
            query = query.filter(Department.id == viewer.department_id)
        if department_id is not None:
            query = query.filter(Department.id == department_id)

        departments = []
        for dept in query.order_by(Department.name).all():
            headcount = self.db.query(Employee).filter(
                Employee.department_id == dept.id,
                Employee.organization_id == viewer.organization_id,
                Employee.active == True,  # noqa: E712
            ).count()
            departments.append({
                "department_id": dept.id,
                "department_name": dept.name,
                "total_employees": headcount,
            })
        return departments

    def generate(
        self,
        employee_id: int,
        organization_id: int,
        role,
        year: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        department_id: Optional[int] = None,
        leave_type_id: Optional[int] = None,
    ) -> ReportData:
        year, window_start, window_end = self.resolve_window(year, start_date, end_date)
        records = self.load_records(
            employee_id, organization_id, role,
            year=year,
            start_date=window_start,
            end_date=window_end,
            department_id=department_id,
            leave_type_id=leave_type_id,
        )
        viewer = self._get_viewer(employee_id, organization_id)
        departments = self._department_headcounts(viewer, role, department_id)

        self.logger.info(
            "leave report generated: employee_id=%s role=%s window=%s..%s records=%s",
            employee_id, getattr(role, "value", role), window_start, window_end, len(records),
        )
        return ReportData(
            year=year,
            start_date=window_start,
            end_date=window_end,
            stats=compute_stats(records),
            leave_by_type=leave_by_type(records),
            leave_by_status=leave_by_status(records),
            leave_by_month=leave_by_month(records, year),
            leave_by_department=leave_by_department(records, departments),
            top_employees_by_leave=top_employees_by_leave(records),
        )

    def export_rows(self, *args, **kwargs) -> List[Dict[str, Any]]:
        """Flat rows for CSV export; accepts the same arguments as load_records."""
        return [
            {
                "request_id": r.request_id,
                "employee_number": r.employee_number,
                "employee_name": r.employee_name,
                "department": r.department_name,
                "leave_type": r.leave_type_name,
                "start_date": r.start_date.isoformat(),
                "end_date": r.end_date.isoformat(),
                "total_days": r.total_days,
                "status": r.status,
            }
            for r in self.load_records(*args, **kwargs)
        ]
