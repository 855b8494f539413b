"""
Department schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_serializer, field_validator, ConfigDict
from app.utils.datetime_utils import iso_8601_utc


def _strip_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError("Name cannot be blank")
    return v


class DepartmentCreate(BaseModel):
    """Schema for creating a department"""
    name: str = Field(..., min_length=1, max_length=100, description="Department name (unique per organization)")
    active: bool = Field(default=True, description="Department active status")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_name(v)


class DepartmentUpdate(BaseModel):
    """Schema for updating a department"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    active: Optional[bool] = Field(None, description="Department active status")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return _strip_name(v)


class DepartmentBrief(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class DepartmentOut(BaseModel):
    """Schema for department output"""
    id: int
    organization_id: int
    name: str
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)
