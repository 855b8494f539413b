"""
Employee management endpoints
"""
import math
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, require_role
from app.models.employee import Role, Employee
from app.schemas.employee import (
    EmployeeCreate,
    EmployeeUpdate,
    EmployeeDetailOut,
    EmployeeListResponse,
    PasswordReset,
)
from app.schemas.leave_balance import EmployeeBalancesOut
from app.services import employee_service
from app.utils.roles import role_at_least

router = APIRouter()


@router.post("", response_model=EmployeeDetailOut, status_code=status.HTTP_201_CREATED)
async def create_employee_endpoint(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """
    Create a new employee (HR_ADMIN and above)

    The employee number is generated when omitted. Without a password the
    employee exists for balances and reports but cannot log in until one
    is set through reset-password.
    """
    return employee_service.create_employee(db, current_user.organization_id, employee_data, current_user.id)


@router.get("", response_model=EmployeeListResponse)
async def list_employees_endpoint(
    search: Optional[str] = Query(None, description="Match on name, email or employee number"),
    department_id: Optional[int] = Query(None),
    role: Optional[Role] = Query(None),
    active_only: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.MANAGER))
):
    """List employees of the caller's organization (MANAGER and above, read-only)"""
    items, total = employee_service.list_employees(
        db,
        current_user.organization_id,
        search=search,
        department_id=department_id,
        role=role,
        active_only=active_only,
        page=page,
        limit=limit,
    )
    return EmployeeListResponse(
        items=items,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/{employee_id}", response_model=EmployeeDetailOut)
async def get_employee_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.MANAGER))
):
    return employee_service.get_employee(db, current_user.organization_id, employee_id)


@router.get("/{employee_id}/balances", response_model=EmployeeBalancesOut)
async def get_employee_balances_endpoint(
    employee_id: int,
    year: Optional[int] = Query(None, description="Defaults to the current year"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """An employee with their leave balances; yourself, or anyone for HR_ADMIN and above"""
    if employee_id != current_user.id and not role_at_least(current_user.role, Role.HR_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own leave balances"
        )
    return employee_service.get_employee_with_balances(
        db, current_user.organization_id, employee_id, year=year
    )


@router.patch("/{employee_id}", response_model=EmployeeDetailOut)
async def update_employee_endpoint(
    employee_id: int,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Update an employee (HR_ADMIN and above)"""
    return employee_service.update_employee(
        db, current_user.organization_id, employee_id, employee_data, current_user.id
    )


@router.post("/{employee_id}/reset-password", response_model=EmployeeDetailOut)
async def reset_password_endpoint(
    employee_id: int,
    password_data: PasswordReset,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Reset an employee's password (HR_ADMIN and above)"""
    return employee_service.reset_password(
        db, current_user.organization_id, employee_id, password_data.new_password, current_user.id
    )


@router.delete("/{employee_id}", response_model=EmployeeDetailOut)
async def deactivate_employee_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """
    Deactivate an employee (HR_ADMIN and above)

    Soft delete: leave history and balances are kept, login is refused.
    """
    return employee_service.deactivate_employee(
        db, current_user.organization_id, employee_id, current_user.id
    )
