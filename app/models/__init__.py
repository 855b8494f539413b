"""
Database models
"""
from app.models.organization import Organization
from app.models.department import Department
from app.models.employee import Employee, Role
from app.models.audit_log import AuditLog
from app.models.leave import (
    LeaveType,
    LeaveBalance,
    LeaveRequest,
    LeaveComment,
    LeaveStatus,
    ACTIVE_LEAVE_STATUSES,
)

__all__ = [
    "Organization",
    "Department",
    "Employee",
    "Role",
    "AuditLog",
    "LeaveType",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveComment",
    "LeaveStatus",
    "ACTIVE_LEAVE_STATUSES",
]
