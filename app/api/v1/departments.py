"""
Department management endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, require_role
from app.models.employee import Role, Employee
from app.schemas.department import DepartmentCreate, DepartmentUpdate, DepartmentOut
from app.services.department_service import (
    create_department,
    list_departments,
    get_department,
    update_department
)

router = APIRouter()


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
async def create_department_endpoint(
    department_data: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Create a new department (HR_ADMIN and above)"""
    return create_department(db, current_user.organization_id, department_data, current_user.id)


@router.get("", response_model=List[DepartmentOut])
async def list_departments_endpoint(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    active_only: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """List departments of the caller's organization"""
    return list_departments(
        db, current_user.organization_id, skip=skip, limit=limit, active_only=active_only
    )


@router.get("/{department_id}", response_model=DepartmentOut)
async def get_department_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return get_department(db, current_user.organization_id, department_id)


@router.patch("/{department_id}", response_model=DepartmentOut)
async def update_department_endpoint(
    department_id: int,
    department_data: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Rename or (de)activate a department (HR_ADMIN and above)"""
    return update_department(
        db, current_user.organization_id, department_id, department_data, current_user.id
    )
