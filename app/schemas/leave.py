"""
Leave request schemas
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator, field_serializer, ConfigDict
from app.models.leave import LeaveStatus
from app.schemas.employee import EmployeeBrief
from app.schemas.leave_type import LeaveTypeBrief
from app.utils.datetime_utils import iso_8601_utc, today_utc


class LeaveCreateRequest(BaseModel):
    """Schema for submitting a leave request"""
    leave_type_id: int = Field(..., description="Leave type in the caller's organization")
    start_date: date = Field(..., description="First day of leave")
    end_date: date = Field(..., description="Last day of leave (inclusive)")
    reason: Optional[str] = Field(None, max_length=500, description="Reason for leave")

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveCreateRequest":
        if self.start_date < today_utc():
            raise ValueError("start_date cannot be in the past")
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class LeaveUpdateRequest(BaseModel):
    """Partial update of a PENDING request; only the fields sent are changed"""
    leave_type_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveUpdateRequest":
        if self.start_date is not None and self.start_date < today_utc():
            raise ValueError("start_date cannot be in the past")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class CheckBalanceRequest(BaseModel):
    leave_type_id: int
    start_date: date
    end_date: date


class BalanceSnapshot(BaseModel):
    total_days: int
    used_days: int
    available_days: int
    carried_over: int
    year: int


class BalanceConflict(BaseModel):
    type: str = Field(..., description="weekend_only, invalid_dates, no_balance_record, insufficient_balance or overlapping_leave")
    message: str


class OverlappingLeave(BaseModel):
    id: int
    start_date: date
    end_date: date
    status: LeaveStatus
    leave_type_name: Optional[str] = None


class CheckBalanceResponse(BaseModel):
    leave_type: LeaveTypeBrief
    current_balance: Optional[BalanceSnapshot] = None
    requested_days: int
    available_days: int
    is_allowed: bool
    conflicts: List[BalanceConflict]
    overlapping_leaves: List[OverlappingLeave]


class ApproveRequest(BaseModel):
    """Schema for leave approval"""
    comment: Optional[str] = Field(None, max_length=500, description="Optional comment for the employee")


class RejectRequest(BaseModel):
    """Schema for leave rejection"""
    comment: str = Field(..., max_length=500, description="Reason for rejection (required)")


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)
    is_internal: bool = Field(False, description="Visible to managers and above only")


class CommentOut(BaseModel):
    id: int
    leave_request_id: int
    author_id: int
    author: Optional[EmployeeBrief] = None
    content: str
    is_internal: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveOut(BaseModel):
    """Schema for leave request output"""
    id: int
    employee_id: int
    employee: Optional[EmployeeBrief] = None
    leave_type_id: int
    leave_type: Optional[LeaveTypeBrief] = None
    start_date: date
    end_date: date
    total_days: int
    reason: Optional[str] = None
    status: LeaveStatus
    approved_by_id: Optional[int] = Field(None, description="ID of the approver")
    approved_at: Optional[datetime] = Field(None, description="When the leave was approved")
    rejected_by_id: Optional[int] = Field(None, description="ID of the rejector")
    rejected_at: Optional[datetime] = Field(None, description="When the leave was rejected")
    cancelled_by_id: Optional[int] = Field(None, description="ID of the canceller")
    cancelled_at: Optional[datetime] = Field(None, description="When the leave was cancelled")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer(
        "created_at", "updated_at", "approved_at", "rejected_at", "cancelled_at",
        when_used="always",
    )
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveDetailOut(LeaveOut):
    """Leave request with the comments visible to the caller"""
    comments: List[CommentOut] = []


class LeaveListResponse(BaseModel):
    items: List[LeaveOut]
    total: int
    page: int
    limit: int
    total_pages: int
