"""
Organization schemas
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_serializer, field_validator
from app.utils.datetime_utils import iso_8601_utc


class OrganizationUpdate(BaseModel):
    """Only the fields sent are changed; domain may be set to null"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    domain: Optional[str] = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().lower() or None


class OrganizationCounts(BaseModel):
    employees: int
    departments: int
    leave_types: int


class OrganizationOut(BaseModel):
    id: int
    name: str
    domain: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    counts: OrganizationCounts

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class DepartmentHeadcount(BaseModel):
    department_id: int
    department_name: str
    count: int


class EmployeeStats(BaseModel):
    total: int
    active: int
    inactive: int
    by_role: Dict[str, int]
    by_department: List[DepartmentHeadcount]


class DepartmentStats(BaseModel):
    total: int
    active: int


class RequestCounts(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    cancelled: int


class PeriodCounts(BaseModel):
    submitted: int
    approved: int
    rejected: int


class YearCounts(PeriodCounts):
    total_days_taken: int


class LeaveStats(BaseModel):
    types: int
    requests: RequestCounts
    this_month: PeriodCounts
    this_year: YearCounts


class OrganizationStats(BaseModel):
    employees: EmployeeStats
    departments: DepartmentStats
    leaves: LeaveStats
