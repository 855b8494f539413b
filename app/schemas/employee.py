"""
Employee schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_serializer, field_validator, ConfigDict
from app.models.employee import Role
from app.schemas.department import DepartmentBrief
from app.utils.datetime_utils import iso_8601_utc


def _clean_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError("Name cannot be blank")
    return v


def _clean_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip().lower()
    local, _, domain = v.partition("@")
    if not local or "." not in domain:
        raise ValueError("Please enter a valid email address")
    return v


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave and balance responses"""
    id: int
    first_name: str
    last_name: str
    email: str
    employee_number: Optional[str] = None
    department_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class EmployeeOut(EmployeeBrief):
    """Current user profile"""
    organization_id: int
    role: Role
    active: bool


class EmployeeDetailOut(EmployeeOut):
    """Employee as returned by the management endpoints"""
    department: Optional[DepartmentBrief] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class EmployeeCreate(BaseModel):
    """Schema for creating an employee"""
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=255, description="Login email, unique across organizations")
    employee_number: Optional[str] = Field(
        None, max_length=20, description="Generated from the organization name when omitted"
    )
    department_id: Optional[int] = None
    role: Role = Role.EMPLOYEE
    password: Optional[str] = Field(None, description="Initial password; without one the employee cannot log in")
    active: bool = True

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return _clean_name(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _clean_email(v)


class EmployeeUpdate(BaseModel):
    """Partial update; only the fields sent are changed. department_id may be null."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    employee_number: Optional[str] = Field(None, max_length=20)
    department_id: Optional[int] = None
    role: Optional[Role] = None
    active: Optional[bool] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: Optional[str]) -> Optional[str]:
        return _clean_name(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        return _clean_email(v)


class PasswordReset(BaseModel):
    new_password: str = Field(..., min_length=1)


class EmployeeListResponse(BaseModel):
    items: List[EmployeeDetailOut]
    total: int
    page: int
    limit: int
    total_pages: int
