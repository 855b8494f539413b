"""
Report schemas
"""
from datetime import date
from typing import List, Optional
from pydantic import BaseModel


class ReportStats(BaseModel):
    total_employees: int
    total_leave_requests: int
    pending_requests: int
    approved_requests: int
    rejected_requests: int
    cancelled_requests: int
    total_leave_days_taken: int
    average_leave_days_per_employee: float


class LeaveByType(BaseModel):
    leave_type_id: int
    leave_type_name: str
    total_requests: int
    approved_requests: int
    total_days: int
    color: str


class LeaveByStatus(BaseModel):
    status: str
    count: int
    percentage: float


class LeaveByMonth(BaseModel):
    month: str
    year: int
    total_requests: int
    approved_requests: int
    rejected_requests: int
    pending_requests: int
    total_days: int


class LeaveByDepartment(BaseModel):
    department_id: int
    department_name: str
    total_employees: int
    total_requests: int
    total_days: int
    average_days_per_employee: float


class TopEmployeeByLeave(BaseModel):
    employee_id: int
    employee_name: str
    employee_number: Optional[str] = None
    department_name: Optional[str] = None
    total_requests: int
    total_days: int
    leave_types: List[str]


class ReportResponse(BaseModel):
    """Full leave report for the caller's scope"""
    year: int
    start_date: date
    end_date: date
    stats: ReportStats
    leave_by_type: List[LeaveByType]
    leave_by_status: List[LeaveByStatus]
    leave_by_month: List[LeaveByMonth]
    leave_by_department: List[LeaveByDepartment]
    top_employees_by_leave: List[TopEmployeeByLeave]

