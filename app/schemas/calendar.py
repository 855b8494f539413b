"""
Leave calendar schemas
"""
import enum
from datetime import date
from typing import Optional
from pydantic import BaseModel


class CalendarView(str, enum.Enum):
    SELF = "SELF"
    TEAM = "TEAM"


class CalendarLeaveEvent(BaseModel):
    id: int
    title: str
    start: date
    end: date
    status: str
    employee_id: int
    employee_name: str
    leave_type_id: int
    leave_type: str
    color: str
    reason: Optional[str] = None
    department: Optional[str] = None
