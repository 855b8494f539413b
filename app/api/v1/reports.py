"""
Reports and exports endpoints
"""
from dataclasses import asdict
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user
from app.models.employee import Employee
from app.schemas.report import ReportResponse
from app.services.audit_service import log_audit
from app.services.report_service import ReportAggregator, EXPORT_HEADERS
from app.utils.csv_export import stream_csv

router = APIRouter()


@router.get("", response_model=ReportResponse)
async def get_leave_report(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Defaults to the current year"),
    start_date: Optional[date] = Query(None, description="Window start, defaults to Jan 1 of year"),
    end_date: Optional[date] = Query(None, description="Window end, defaults to Dec 31 of year"),
    department_id: Optional[int] = Query(None),
    leave_type_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """
    Leave statistics for the caller's scope

    Role-based scoping:
    - HR_ADMIN / SUPER_ADMIN: whole organization
    - MANAGER: active employees of own department
    - EMPLOYEE: own requests

    Filters narrow the scope, never widen it. A request counts when it
    starts and ends inside the window.
    """
    report = ReportAggregator(db).generate(
        current_user.id,
        current_user.organization_id,
        current_user.role,
        year=year,
        start_date=start_date,
        end_date=end_date,
        department_id=department_id,
        leave_type_id=leave_type_id,
    )
    return ReportResponse.model_validate(asdict(report))


@router.get("/leaves.csv")
async def export_leaves_csv(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    department_id: Optional[int] = Query(None),
    leave_type_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """
    Export the leave requests behind the report as CSV

    Same scoping and filters as the JSON report.
    """
    aggregator = ReportAggregator(db)
    year, window_start, window_end = aggregator.resolve_window(year, start_date, end_date)
    rows = aggregator.export_rows(
        current_user.id,
        current_user.organization_id,
        current_user.role,
        year=year,
        start_date=window_start,
        end_date=window_end,
        department_id=department_id,
        leave_type_id=leave_type_id,
    )

    filename = f"leaves_{window_start.strftime('%Y%m%d')}_{window_end.strftime('%Y%m%d')}.csv"

    log_audit(
        db=db,
        actor_id=current_user.id,
        organization_id=current_user.organization_id,
        action="REPORT_EXPORT",
        entity_type="report",
        meta={
            "report_type": "leaves",
            "start_date": window_start,
            "end_date": window_end,
            "department_id": department_id,
            "leave_type_id": leave_type_id,
            "row_count": len(rows),
        },
    )

    return stream_csv(EXPORT_HEADERS, rows, filename)
