"""
Leave balance schemas
"""
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from app.schemas.employee import EmployeeBrief, EmployeeDetailOut
from app.schemas.leave_type import LeaveTypeBrief
from app.utils.datetime_utils import today_utc

MIN_BALANCE_YEAR = 2020
MAX_YEARS_AHEAD = 5


def _check_year(v: int) -> int:
    max_year = today_utc().year + MAX_YEARS_AHEAD
    if v < MIN_BALANCE_YEAR or v > max_year:
        raise ValueError(f"year must be between {MIN_BALANCE_YEAR} and {max_year}")
    return v


class LeaveBalanceAssign(BaseModel):
    """Assign a leave allocation to one employee"""
    employee_id: int
    leave_type_id: int
    year: int
    total_days: int = Field(..., ge=0, le=365)
    carried_over: int = Field(0, ge=0, le=365)
    overwrite: bool = Field(False, description="Replace totals of an existing balance")

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: int) -> int:
        return _check_year(v)


class LeaveBalanceBulkAssign(BaseModel):
    """Assign the same allocation to up to 100 employees"""
    employee_ids: List[int] = Field(..., min_length=1, max_length=100)
    leave_type_id: int
    year: int
    total_days: int = Field(..., ge=0, le=365)
    carried_over: int = Field(0, ge=0, le=365)

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: int) -> int:
        return _check_year(v)


class LeaveBalanceUpdate(BaseModel):
    total_days: Optional[int] = Field(None, ge=0, le=365)
    carried_over: Optional[int] = Field(None, ge=0, le=365)


class LeaveBalanceOut(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    year: int
    total_days: int
    used_days: int
    carried_over: int
    available_days: int
    leave_type: Optional[LeaveTypeBrief] = None
    employee: Optional[EmployeeBrief] = None

    model_config = ConfigDict(from_attributes=True)


class BulkAssignSuccess(BaseModel):
    employee_id: int
    employee_name: str
    leave_balance_id: int


class BulkAssignFailure(BaseModel):
    employee_id: int
    employee_name: str
    error: str


class BulkAssignSummary(BaseModel):
    total: int
    successful: int
    failed: int


class BulkAssignResult(BaseModel):
    successful: List[BulkAssignSuccess]
    failed: List[BulkAssignFailure]
    summary: BulkAssignSummary


class EmployeeBalancesOut(BaseModel):
    """An employee with their balances for one year"""
    employee: EmployeeDetailOut
    year: int
    balances: List[LeaveBalanceOut]
