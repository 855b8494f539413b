"""
Approval workflow: PENDING -> APPROVED | REJECTED
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session, joinedload
from app.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.db.session import rollback_on_error
from app.models.employee import Employee, Role
from app.models.leave import LeaveComment, LeaveRequest, LeaveStatus
from app.services.audit_service import log_audit
from app.services.leave_balance_service import LeaveBalanceLedger
from app.services.leave_service import MAX_TEXT_LENGTH
from app.utils.datetime_utils import now_utc
from app.utils.roles import role_at_least


class ApprovalWorkflow:
    """
    Approve or reject PENDING leave requests.

    The status change is a conditional UPDATE on status = PENDING, so
    when two approvers race only the first one succeeds and the other gets
    InvalidStateError. Approval and the balance debit commit together.
    """

    def __init__(
        self,
        db: Session,
        logger: Optional[logging.Logger] = None,
        ledger: Optional[LeaveBalanceLedger] = None,
    ):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.ledger = ledger or LeaveBalanceLedger(db, self.logger)

    def _get_approver(self, approver_id: int) -> Employee:
        approver = self.db.query(Employee).filter(
            Employee.id == approver_id,
            Employee.active == True,  # noqa: E712
        ).first()
        if approver is None:
            raise NotFoundError(f"Employee with id {approver_id} not found")
        if not role_at_least(approver.role, Role.MANAGER):
            raise ForbiddenError("Only managers and above can approve or reject leave requests")
        return approver

    def _get_pending_request(self, request_id: int, approver: Employee, action: str) -> LeaveRequest:
        leave_request = (
            self.db.query(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .options(joinedload(LeaveRequest.employee))
            .filter(
                LeaveRequest.id == request_id,
                Employee.organization_id == approver.organization_id,
            )
            .populate_existing()
            .first()
        )
        if leave_request is None:
            raise NotFoundError(f"Leave request with id {request_id} not found")
        if leave_request.employee_id == approver.id:
            raise ForbiddenError(f"You cannot {action} your own leave request")
        if leave_request.status != LeaveStatus.PENDING.value:
            raise InvalidStateError(
                f"Cannot {action} leave request with status {leave_request.status}"
            )
        return leave_request

    def _transition(self, request_id: int, values: dict) -> None:
        updated = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == request_id,
            LeaveRequest.status == LeaveStatus.PENDING.value,
        ).update(values, synchronize_session=False)
        if updated == 0:
            raise InvalidStateError("Leave request has already been processed")

    def _reload(self, request_id: int) -> LeaveRequest:
        return (
            self.db.query(LeaveRequest)
            .options(joinedload(LeaveRequest.employee), joinedload(LeaveRequest.leave_type))
            .filter(LeaveRequest.id == request_id)
            .populate_existing()
            .one()
        )

    def approve(self, request_id: int, approver_id: int, comment: Optional[str] = None) -> LeaveRequest:
        """
        Approve a leave request and debit the employee's balance.

        Raises:
            ForbiddenError: approver below MANAGER, or approving own request
            InvalidStateError: request is not PENDING
            InsufficientBalanceError: balance cannot cover total_days; nothing is written
        """
        comment = _clean_comment(comment)

        with rollback_on_error(self.db, self.logger, "approve leave request", leave_request_id=request_id):
            approver = self._get_approver(approver_id)
            leave_request = self._get_pending_request(request_id, approver, "approve")
            approved_at = now_utc()

            self._transition(request_id, {
                LeaveRequest.status: LeaveStatus.APPROVED.value,
                LeaveRequest.approved_by_id: approver.id,
                LeaveRequest.approved_at: approved_at,
                LeaveRequest.updated_at: approved_at,
            })
            balance = self.ledger.reserve(
                leave_request.employee_id,
                leave_request.leave_type_id,
                leave_request.start_date.year,
                leave_request.total_days,
                commit=False,
            )
            if comment:
                self.db.add(LeaveComment(
                    leave_request_id=request_id,
                    author_id=approver.id,
                    content=comment,
                    is_internal=False,
                ))
            log_audit(
                self.db,
                actor_id=approver.id,
                organization_id=approver.organization_id,
                action="LEAVE_APPROVE",
                entity_type="leave_request",
                entity_id=request_id,
                meta={
                    "employee_id": leave_request.employee_id,
                    "leave_type_id": leave_request.leave_type_id,
                    "total_days": leave_request.total_days,
                    "available_days_after": balance.available_days,
                    "comment": comment,
                },
                commit=False,
            )
            self.db.commit()

        self.logger.info(
            "leave status transition: leave_request_id=%s before=PENDING after=APPROVED action=approve approver_id=%s",
            request_id, approver_id,
        )
        return self._reload(request_id)

    def reject(self, request_id: int, approver_id: int, comment: str) -> LeaveRequest:
        """
        Reject a leave request. A non-blank comment is required; balances
        are untouched.
        """
        comment = _clean_comment(comment)
        if not comment:
            raise ValidationError("A comment is required when rejecting a leave request")

        with rollback_on_error(self.db, self.logger, "reject leave request", leave_request_id=request_id):
            approver = self._get_approver(approver_id)
            leave_request = self._get_pending_request(request_id, approver, "reject")
            rejected_at = now_utc()

            self._transition(request_id, {
                LeaveRequest.status: LeaveStatus.REJECTED.value,
                LeaveRequest.rejected_by_id: approver.id,
                LeaveRequest.rejected_at: rejected_at,
                LeaveRequest.updated_at: rejected_at,
            })
            self.db.add(LeaveComment(
                leave_request_id=request_id,
                author_id=approver.id,
                content=comment,
                is_internal=False,
            ))
            log_audit(
                self.db,
                actor_id=approver.id,
                organization_id=approver.organization_id,
                action="LEAVE_REJECT",
                entity_type="leave_request",
                entity_id=request_id,
                meta={"employee_id": leave_request.employee_id, "comment": comment},
                commit=False,
            )
            self.db.commit()

        self.logger.info(
            "leave status transition: leave_request_id=%s before=PENDING after=REJECTED action=reject approver_id=%s",
            request_id, approver_id,
        )
        return self._reload(request_id)


def _clean_comment(comment: Optional[str]) -> Optional[str]:
    if comment is None:
        return None
    comment = comment.strip()
    if len(comment) > MAX_TEXT_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_TEXT_LENGTH} characters")
    return comment or None
