"""
Tests for status-guarded updates when another writer commits between the
status check and the UPDATE
"""
from datetime import date

import pytest
from app.core.exceptions import InsufficientBalanceError, InvalidStateError
from app.models.leave import LeaveBalance, LeaveComment, LeaveRequest, LeaveStatus
from app.services.approval_service import ApprovalWorkflow
from app.services.leave_balance_service import LeaveBalanceLedger
from app.services.leave_service import LeaveRequestService


class InterleavedApproval(ApprovalWorkflow):
    """Runs `interleave` once, after the PENDING check and before the status update"""

    def __init__(self, db, interleave):
        super().__init__(db)
        self.interleave = interleave

    def _get_pending_request(self, *args):
        leave_request = super()._get_pending_request(*args)
        if self.interleave is not None:
            interleave, self.interleave = self.interleave, None
            interleave()
        return leave_request


class InterleavedRequestService(LeaveRequestService):
    """Runs `interleave` once, right after the request row has been read"""

    def __init__(self, db, interleave):
        super().__init__(db)
        self.interleave = interleave

    def _get_request(self, leave_id, organization_id):
        leave_request = super()._get_request(leave_id, organization_id)
        if self.interleave is not None:
            interleave, self.interleave = self.interleave, None
            interleave()
        return leave_request


def apply(db, employee, leave_type, start, end):
    return LeaveRequestService(db).create(
        employee.id, employee.organization_id, leave_type.id, start, end
    )


def stored_request(db, leave_id):
    return db.query(LeaveRequest).filter(LeaveRequest.id == leave_id).populate_existing().one()


def stored_balance(db, balance_id):
    return db.query(LeaveBalance).filter(LeaveBalance.id == balance_id).populate_existing().one()


# ----------------------------------------------------------------------
# Approve / reject
# ----------------------------------------------------------------------

def test_second_approver_loses_race(db, concurrent_db, employee, manager, hr_admin, annual_leave, make_balance):
    balance = make_balance(employee, annual_leave, 2025, total_days=10)
    leave_id = apply(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 3)).id

    def other_approver():
        ApprovalWorkflow(concurrent_db).approve(leave_id, hr_admin.id)

    with pytest.raises(InvalidStateError, match="already been processed"):
        InterleavedApproval(db, other_approver).approve(leave_id, manager.id, "Enjoy")

    stored = stored_request(db, leave_id)
    assert stored.status == LeaveStatus.APPROVED.value
    assert stored.approved_by_id == hr_admin.id
    # Debited once, by the winner
    assert stored_balance(db, balance.id).used_days == 2
    assert db.query(LeaveComment).filter(LeaveComment.leave_request_id == leave_id).count() == 0


def test_reject_after_concurrent_approval(db, concurrent_db, employee, manager, hr_admin, annual_leave, make_balance):
    balance = make_balance(employee, annual_leave, 2025, total_days=10)
    leave_id = apply(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 4)).id

    def other_approver():
        ApprovalWorkflow(concurrent_db).approve(leave_id, hr_admin.id)

    with pytest.raises(InvalidStateError):
        InterleavedApproval(db, other_approver).reject(leave_id, manager.id, "Team offsite")

    stored = stored_request(db, leave_id)
    assert stored.status == LeaveStatus.APPROVED.value
    assert stored.rejected_by_id is None
    assert stored.rejected_at is None
    assert stored_balance(db, balance.id).used_days == 3
    assert db.query(LeaveComment).filter(LeaveComment.leave_request_id == leave_id).count() == 0


def test_approve_after_balance_drained_concurrently(db, concurrent_db, employee, manager, hr_admin,
                                                    annual_leave, make_balance):
    balance = make_balance(employee, annual_leave, 2025, total_days=10)
    first_id = apply(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 4)).id
    second_id = apply(db, employee, annual_leave, date(2025, 7, 1), date(2025, 7, 8)).id

    def drain():
        ApprovalWorkflow(concurrent_db).approve(second_id, hr_admin.id)

    with pytest.raises(InsufficientBalanceError) as exc:
        InterleavedApproval(db, drain).approve(first_id, manager.id)

    assert exc.value.details == {"requested_days": 3, "available_days": 2}
    first = stored_request(db, first_id)
    assert first.status == LeaveStatus.PENDING.value
    assert first.approved_by_id is None
    assert first.approved_at is None
    assert stored_request(db, second_id).status == LeaveStatus.APPROVED.value
    assert stored_balance(db, balance.id).used_days == 8


# ----------------------------------------------------------------------
# Update / cancel
# ----------------------------------------------------------------------

def test_update_after_concurrent_cancel(db, concurrent_db, employee, annual_leave):
    leave_id = apply(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 4)).id

    def cancel_elsewhere():
        LeaveRequestService(concurrent_db).cancel(leave_id, employee.id)

    with pytest.raises(InvalidStateError, match="no longer pending"):
        InterleavedRequestService(db, cancel_elsewhere).update(
            leave_id, employee.id, employee.organization_id,
            {"end_date": date(2025, 6, 10), "reason": "Longer trip"},
        )

    stored = stored_request(db, leave_id)
    assert stored.status == LeaveStatus.CANCELLED.value
    assert stored.end_date == date(2025, 6, 4)
    assert stored.total_days == 3
    assert stored.reason is None


def test_cancel_after_concurrent_approval(db, concurrent_db, employee, hr_admin, annual_leave, make_balance):
    balance = make_balance(employee, annual_leave, 2025, total_days=10)
    leave_id = apply(db, employee, annual_leave, date(2025, 6, 2), date(2025, 6, 4)).id

    def other_approver():
        ApprovalWorkflow(concurrent_db).approve(leave_id, hr_admin.id)

    with pytest.raises(InvalidStateError, match="status changed"):
        InterleavedRequestService(db, other_approver).cancel(leave_id, employee.id, reason="Plans changed")

    stored = stored_request(db, leave_id)
    assert stored.status == LeaveStatus.APPROVED.value
    assert stored.cancelled_by_id is None
    assert stored.cancelled_at is None
    # Not released: the cancel never happened
    assert stored_balance(db, balance.id).used_days == 3
    assert db.query(LeaveComment).filter(LeaveComment.leave_request_id == leave_id).count() == 0


# ----------------------------------------------------------------------
# Ledger
# ----------------------------------------------------------------------

def test_reserve_after_concurrent_debit(db, concurrent_db, employee, annual_leave, make_balance):
    balance = make_balance(employee, annual_leave, 2025, total_days=5)
    ledger = LeaveBalanceLedger(db)
    assert ledger.find_balance(employee.id, annual_leave.id, 2025).available_days == 5

    LeaveBalanceLedger(concurrent_db).reserve(employee.id, annual_leave.id, 2025, 4)

    with pytest.raises(InsufficientBalanceError) as exc:
        ledger.reserve(employee.id, annual_leave.id, 2025, 3)

    assert exc.value.details == {"requested_days": 3, "available_days": 1}
    assert stored_balance(db, balance.id).used_days == 4
