"""
Leave type endpoints
"""
import math
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, require_role
from app.models.employee import Employee, Role
from app.schemas.leave_type import (
    LeaveTypeCreate,
    LeaveTypeUpdate,
    LeaveTypeOut,
    LeaveTypeBrief,
    LeaveTypeListResponse,
)
from app.services import leave_type_service

router = APIRouter()


@router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    search: Optional[str] = Query(None, description="Match on name or description"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """List leave types of the caller's organization"""
    items, total = leave_type_service.list_leave_types(
        db, current_user.organization_id, search=search, page=page, limit=limit
    )
    return LeaveTypeListResponse(
        items=items,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/simple", response_model=List[LeaveTypeBrief])
async def list_leave_types_simple(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Id and name of every leave type, for selection lists"""
    return leave_type_service.list_leave_types_simple(db, current_user.organization_id)


@router.get("/{leave_type_id}", response_model=LeaveTypeOut)
async def get_leave_type(
    leave_type_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return leave_type_service.get_leave_type(db, current_user.organization_id, leave_type_id)


@router.post("", response_model=LeaveTypeOut, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    data: LeaveTypeCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Create a leave type (HR_ADMIN and above)"""
    return leave_type_service.create_leave_type(db, current_user.organization_id, data, current_user.id)


@router.patch("/{leave_type_id}", response_model=LeaveTypeOut)
async def update_leave_type(
    leave_type_id: int,
    data: LeaveTypeUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    return leave_type_service.update_leave_type(
        db, current_user.organization_id, leave_type_id, data, current_user.id
    )


@router.delete("/{leave_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_type(
    leave_type_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Delete a leave type no balance or request refers to"""
    leave_type_service.delete_leave_type(db, current_user.organization_id, leave_type_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
