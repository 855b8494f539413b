"""
Leave calendar endpoints
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user
from app.models.employee import Employee
from app.schemas.calendar import CalendarLeaveEvent, CalendarView
from app.services import calendar_service

router = APIRouter()


@router.get("/leaves", response_model=List[CalendarLeaveEvent])
async def get_calendar_leaves(
    type: CalendarView = Query(..., description="SELF for the caller's leave, TEAM for the organization"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    department_id: Optional[int] = Query(None, description="TEAM only: narrow to one department"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """
    Approved leave overlapping the window, earliest first

    TEAM covers active employees of the whole organization and omits
    reasons.
    """
    if type == CalendarView.SELF:
        return calendar_service.get_self_leave_events(db, current_user.id, start_date, end_date)
    return calendar_service.get_team_leave_events(
        db, current_user.organization_id, start_date, end_date, department_id=department_id
    )
