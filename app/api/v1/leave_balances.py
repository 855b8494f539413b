"""
Leave balance endpoints
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, require_role
from app.models.employee import Employee, Role
from app.schemas.leave_balance import (
    LeaveBalanceAssign,
    LeaveBalanceBulkAssign,
    LeaveBalanceUpdate,
    LeaveBalanceOut,
    BulkAssignResult,
)
from app.services.leave_balance_service import LeaveBalanceLedger
from app.utils.roles import role_at_least

router = APIRouter()


@router.get("", response_model=List[LeaveBalanceOut])
async def list_balances(
    employee_id: Optional[int] = Query(None, description="Defaults to the caller; other employees need HR_ADMIN"),
    year: Optional[int] = Query(None),
    leave_type_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """List leave balances of one employee"""
    target_id = employee_id or current_user.id
    if target_id != current_user.id and not role_at_least(current_user.role, Role.HR_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own leave balances"
        )
    ledger = LeaveBalanceLedger(db)
    return ledger.list_for_employee(
        current_user.organization_id, target_id, year=year, leave_type_id=leave_type_id
    )


@router.post("", response_model=LeaveBalanceOut, status_code=status.HTTP_201_CREATED)
async def assign_balance(
    data: LeaveBalanceAssign,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """
    Assign a yearly allocation to an employee (HR_ADMIN and above)

    409 if the balance exists and overwrite is false.
    """
    ledger = LeaveBalanceLedger(db)
    return ledger.assign(
        current_user.organization_id,
        data.employee_id,
        data.leave_type_id,
        data.year,
        data.total_days,
        data.carried_over,
        overwrite=data.overwrite,
        actor_id=current_user.id,
    )


@router.post("/bulk", response_model=BulkAssignResult)
async def bulk_assign_balances(
    data: LeaveBalanceBulkAssign,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Assign the same allocation to many employees; per-employee failures are reported, not raised"""
    ledger = LeaveBalanceLedger(db)
    return ledger.bulk_assign(
        current_user.organization_id,
        data.employee_ids,
        data.leave_type_id,
        data.year,
        data.total_days,
        data.carried_over,
        actor_id=current_user.id,
    )


@router.get("/{balance_id}", response_model=LeaveBalanceOut)
async def get_balance(
    balance_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    balance = LeaveBalanceLedger(db).get_by_id(current_user.organization_id, balance_id)
    if balance.employee_id != current_user.id and not role_at_least(current_user.role, Role.HR_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own leave balances"
        )
    return balance


@router.patch("/{balance_id}", response_model=LeaveBalanceOut)
async def update_balance(
    balance_id: int,
    data: LeaveBalanceUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    return LeaveBalanceLedger(db).update(
        current_user.organization_id,
        balance_id,
        total_days=data.total_days,
        carried_over=data.carried_over,
        actor_id=current_user.id,
    )


@router.delete("/{balance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_balance(
    balance_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Delete an unused balance; 409 once any day has been used"""
    LeaveBalanceLedger(db).delete(current_user.organization_id, balance_id, actor_id=current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
