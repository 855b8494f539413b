"""
Leave type schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_serializer, field_validator, ConfigDict
from app.utils.datetime_utils import iso_8601_utc


class LeaveTypeCreate(BaseModel):
    """Schema for creating a leave type"""
    name: str = Field(..., min_length=1, max_length=100, description="Leave type name (unique per organization)")
    description: Optional[str] = Field(None, max_length=500)
    max_days_per_year: int = Field(..., ge=1, le=365, description="Yearly cap in days")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class LeaveTypeUpdate(BaseModel):
    """Schema for updating a leave type"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    max_days_per_year: Optional[int] = Field(None, ge=1, le=365)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class LeaveTypeBrief(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class LeaveTypeOut(BaseModel):
    """Schema for leave type output"""
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    max_days_per_year: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveTypeListResponse(BaseModel):
    items: List[LeaveTypeOut]
    total: int
    page: int
    limit: int
    total_pages: int
