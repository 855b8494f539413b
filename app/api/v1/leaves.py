"""
Leave endpoints
"""
import math
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user
from app.models.employee import Employee
from app.models.leave import LeaveStatus
from app.schemas.leave import (
    LeaveCreateRequest,
    LeaveUpdateRequest,
    LeaveOut,
    LeaveDetailOut,
    LeaveListResponse,
    CheckBalanceRequest,
    CheckBalanceResponse,
    ApproveRequest,
    RejectRequest,
    CancelRequest,
    CommentCreate,
    CommentOut,
)
from app.services.approval_service import ApprovalWorkflow
from app.services.leave_service import LeaveRequestService

router = APIRouter()


def _page(items, total: int, page: int, limit: int) -> LeaveListResponse:
    return LeaveListResponse(
        items=items,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.post("", response_model=LeaveOut, status_code=status.HTTP_201_CREATED)
async def create_leave(
    leave_data: LeaveCreateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """
    Submit a leave request for the caller (status PENDING)

    Validations:
    - start_date not in the past, end_date >= start_date, same calendar year
    - leave type belongs to the caller's organization
    - at least one counted day under the configured day count policy
    - no overlap with the caller's PENDING/APPROVED requests (409)

    The balance is only debited on approval.
    """
    service = LeaveRequestService(db)
    return service.create(
        employee_id=current_user.id,
        organization_id=current_user.organization_id,
        leave_type_id=leave_data.leave_type_id,
        start_date=leave_data.start_date,
        end_date=leave_data.end_date,
        reason=leave_data.reason,
    )


@router.get("", response_model=LeaveListResponse)
async def list_my_leaves(
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    leave_type_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None, description="Requests starting on or after"),
    end_date: Optional[date] = Query(None, description="Requests ending on or before"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """List the caller's own leave requests, newest first"""
    items, total = LeaveRequestService(db).list(
        current_user.id,
        status=status_filter,
        leave_type_id=leave_type_id,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return _page(items, total, page, limit)


@router.get("/pending", response_model=LeaveListResponse)
async def list_pending(
    leave_type_id: Optional[int] = Query(None),
    department_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """PENDING requests awaiting review (MANAGER and above)"""
    items, total = LeaveRequestService(db).list_pending_for_review(
        current_user.id,
        leave_type_id=leave_type_id,
        department_id=department_id,
        page=page,
        limit=limit,
    )
    return _page(items, total, page, limit)


@router.post("/check-balance", response_model=CheckBalanceResponse)
async def check_balance(
    data: CheckBalanceRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Preview cost and blocking conflicts of a request without creating it"""
    return LeaveRequestService(db).check_balance(
        current_user.id,
        current_user.organization_id,
        data.leave_type_id,
        data.start_date,
        data.end_date,
    )


@router.get("/{leave_request_id}", response_model=LeaveDetailOut)
async def get_leave(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Owner, or MANAGER and above in the same organization"""
    service = LeaveRequestService(db)
    leave_request = service.get_by_id(leave_request_id, current_user.id)
    comments = service.list_comments(leave_request_id, current_user.id)
    # Built from LeaveOut so the unfiltered comments relationship is never loaded
    return LeaveDetailOut(
        **dict(LeaveOut.model_validate(leave_request)),
        comments=[CommentOut.model_validate(c) for c in comments],
    )


@router.patch("/{leave_request_id}", response_model=LeaveOut)
async def update_leave(
    leave_request_id: int,
    data: LeaveUpdateRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Edit the caller's own PENDING request"""
    return LeaveRequestService(db).update(
        leave_request_id,
        current_user.id,
        current_user.organization_id,
        data.model_dump(exclude_unset=True),
    )


@router.post("/{leave_request_id}/cancel", response_model=LeaveOut)
async def cancel_leave(
    leave_request_id: int,
    data: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """
    Cancel the caller's own request

    PENDING or APPROVED only; cancelling an APPROVED request returns its
    days to the balance.
    """
    reason = data.reason if data else None
    return LeaveRequestService(db).cancel(leave_request_id, current_user.id, reason)


@router.post("/{leave_request_id}/approve", response_model=LeaveOut)
async def approve_leave(
    leave_request_id: int,
    data: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """
    Approve a PENDING request (MANAGER and above, never one's own)

    Debits the balance in the same transaction; 422 when the balance
    cannot cover the request, which then stays PENDING.
    """
    comment = data.comment if data else None
    return ApprovalWorkflow(db).approve(leave_request_id, current_user.id, comment)


@router.post("/{leave_request_id}/reject", response_model=LeaveOut)
async def reject_leave(
    leave_request_id: int,
    data: RejectRequest,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Reject a PENDING request; a non-blank comment is required"""
    return ApprovalWorkflow(db).reject(leave_request_id, current_user.id, data.comment)


@router.get("/{leave_request_id}/comments", response_model=List[CommentOut])
async def list_comments(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return LeaveRequestService(db).list_comments(leave_request_id, current_user.id)


@router.post("/{leave_request_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(
    leave_request_id: int,
    data: CommentCreate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Comment on a request; internal comments need MANAGER and above"""
    return LeaveRequestService(db).add_comment(
        leave_request_id, current_user.id, data.content, is_internal=data.is_internal
    )
