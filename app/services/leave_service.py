"""
Leave service - business logic for leave requests
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session, joinedload
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.db.session import rollback_on_error
from app.models.employee import Employee, Role
from app.models.leave import (
    ACTIVE_LEAVE_STATUSES,
    LeaveComment,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from app.services.audit_service import log_audit
from app.services.leave_balance_service import LeaveBalanceLedger
from app.utils.datetime_utils import now_utc
from app.utils.roles import role_at_least

MAX_TEXT_LENGTH = 500
MAX_PAGE_SIZE = 100

DAY_COUNT_CALENDAR = "calendar"
DAY_COUNT_BUSINESS = "business"


def is_weekend(check_date: date) -> bool:
    """Saturday or Sunday"""
    return check_date.weekday() >= 5  # Monday=0, Sunday=6


def count_leave_days(start_date: date, end_date: date, policy: str = DAY_COUNT_CALENDAR) -> int:
    """
    Number of leave days in [start_date, end_date].

    `calendar` counts every day of the inclusive span; `business` skips
    Saturdays and Sundays. An inverted range counts as zero.
    """
    if end_date < start_date:
        return 0
    span = (end_date - start_date).days + 1
    if policy == DAY_COUNT_CALENDAR:
        return span
    if policy == DAY_COUNT_BUSINESS:
        return sum(
            1 for offset in range(span)
            if not is_weekend(start_date + timedelta(days=offset))
        )
    raise ValueError(f"Unknown day count policy: {policy}")


def validate_leave_dates(start_date: date, end_date: date) -> None:
    """
    Validate date order and that both dates fall within the same calendar year.

    Balances are kept per year, so a request spanning Dec 31 to Jan 2 would
    have no single balance to debit.
    """
    if end_date < start_date:
        raise ValidationError("end_date must be on or after start_date")
    if start_date.year != end_date.year:
        raise ValidationError(
            f"Leave cannot span across years. Start year: {start_date.year}, end year: {end_date.year}"
        )


def find_overlapping(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_leave_id: Optional[int] = None,
) -> List[LeaveRequest]:
    """
    PENDING or APPROVED requests of the employee whose range intersects
    [start_date, end_date].
    """
    # Overlap: existing.start <= new.end AND existing.end >= new.start
    query = db.query(LeaveRequest).options(joinedload(LeaveRequest.leave_type)).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
        LeaveRequest.start_date <= end_date,
        LeaveRequest.end_date >= start_date,
    )
    if exclude_leave_id is not None:
        query = query.filter(LeaveRequest.id != exclude_leave_id)
    return query.order_by(LeaveRequest.start_date).all()


def validate_overlap(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_leave_id: Optional[int] = None,
) -> None:
    """
    Raises:
        ConflictError: if an overlapping PENDING/APPROVED request exists
    """
    overlapping = find_overlapping(db, employee_id, start_date, end_date, exclude_leave_id)
    if overlapping:
        first = overlapping[0]
        raise ConflictError(
            f"Leave request overlaps with existing leave from {first.start_date} to {first.end_date}",
            details={"overlapping_leave_ids": [lr.id for lr in overlapping]},
        )


def validate_pagination(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def _clean_text(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{field} must be at most {MAX_TEXT_LENGTH} characters")
    return value or None


class LeaveRequestService:
    """Create, update, cancel and read leave requests."""

    def __init__(
        self,
        db: Session,
        logger: Optional[logging.Logger] = None,
        day_count_policy: Optional[str] = None,
        ledger: Optional[LeaveBalanceLedger] = None,
    ):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.day_count_policy = day_count_policy or settings.LEAVE_DAY_COUNT_POLICY
        self.ledger = ledger or LeaveBalanceLedger(db, self.logger)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_employee(self, employee_id: int) -> Employee:
        employee = self.db.query(Employee).filter(Employee.id == employee_id).first()
        if employee is None:
            raise NotFoundError(f"Employee with id {employee_id} not found")
        return employee

    def _get_leave_type(self, organization_id: int, leave_type_id: int) -> LeaveType:
        leave_type = self.db.query(LeaveType).filter(
            LeaveType.id == leave_type_id,
            LeaveType.organization_id == organization_id,
        ).first()
        if leave_type is None:
            raise ValidationError(f"Leave type {leave_type_id} is not available in this organization")
        return leave_type

    def _get_request(self, leave_id: int, organization_id: int) -> LeaveRequest:
        """Request within the tenant; other tenants' ids are indistinguishable from unknown ones."""
        leave_request = (
            self.db.query(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .options(joinedload(LeaveRequest.employee), joinedload(LeaveRequest.leave_type))
            .filter(LeaveRequest.id == leave_id, Employee.organization_id == organization_id)
            .populate_existing()
            .first()
        )
        if leave_request is None:
            raise NotFoundError(f"Leave request with id {leave_id} not found")
        return leave_request

    def _get_viewable_request(self, leave_id: int, viewer: Employee) -> LeaveRequest:
        leave_request = self._get_request(leave_id, viewer.organization_id)
        if leave_request.employee_id != viewer.id and not role_at_least(viewer.role, Role.MANAGER):
            raise ForbiddenError("You do not have access to this leave request")
        return leave_request

    def _count_days(self, start_date: date, end_date: date) -> int:
        total_days = count_leave_days(start_date, end_date, self.day_count_policy)
        if total_days <= 0:
            raise ValidationError("Leave request must include at least one working day")
        return total_days

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(
        self,
        employee_id: int,
        organization_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        """
        Submit a leave request (status PENDING).

        No balance is reserved here; the debit happens on approval.

        Raises:
            ValidationError: bad dates, foreign leave type, zero counted days
            ConflictError: overlap with a PENDING/APPROVED request
        """
        validate_leave_dates(start_date, end_date)
        reason = _clean_text(reason, "reason")

        with rollback_on_error(self.db, self.logger, "create leave request", employee_id=employee_id):
            employee = self._get_employee(employee_id)
            if employee.organization_id != organization_id or not employee.active:
                raise NotFoundError(f"Employee with id {employee_id} not found")
            leave_type = self._get_leave_type(organization_id, leave_type_id)
            total_days = self._count_days(start_date, end_date)
            validate_overlap(self.db, employee_id, start_date, end_date)

            leave_request = LeaveRequest(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                start_date=start_date,
                end_date=end_date,
                total_days=total_days,
                reason=reason,
                status=LeaveStatus.PENDING.value,
            )
            self.db.add(leave_request)
            self.db.flush()

            log_audit(
                self.db,
                actor_id=employee_id,
                organization_id=organization_id,
                action="LEAVE_APPLY",
                entity_type="leave_request",
                entity_id=leave_request.id,
                meta={
                    "leave_type_id": leave_type.id,
                    "start_date": start_date,
                    "end_date": end_date,
                    "total_days": total_days,
                    "status": LeaveStatus.PENDING.value,
                },
                commit=False,
            )
            self.db.commit()
            self.db.refresh(leave_request)

        self.logger.info(
            "leave request created: leave_request_id=%s employee_id=%s days=%s status=PENDING",
            leave_request.id, employee_id, total_days,
        )
        return leave_request

    def check_balance(
        self,
        employee_id: int,
        organization_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
    ) -> Dict[str, Any]:
        """
        Dry run of a request: what it would cost and what would block it.

        Read only. Every blocking reason is reported in `conflicts` rather
        than raised.
        """
        leave_type = self.db.query(LeaveType).filter(
            LeaveType.id == leave_type_id,
            LeaveType.organization_id == organization_id,
        ).first()
        if leave_type is None:
            raise NotFoundError(f"Leave type with id {leave_type_id} not found")

        conflicts: List[Dict[str, str]] = []
        requested_days = 0
        if end_date < start_date:
            conflicts.append({"type": "invalid_dates", "message": "End date must be on or after start date"})
        elif start_date.year != end_date.year:
            conflicts.append({"type": "invalid_dates", "message": "Leave cannot span across years"})
        else:
            requested_days = count_leave_days(start_date, end_date, self.day_count_policy)
            if requested_days == 0:
                conflicts.append({
                    "type": "weekend_only",
                    "message": "The selected range contains only weekend days",
                })

        year = start_date.year
        balance = self.ledger.find_balance(employee_id, leave_type_id, year)
        current_balance = None
        available_days = 0
        if balance is None:
            conflicts.append({
                "type": "no_balance_record",
                "message": f"No {leave_type.name} balance allocated for {year}",
            })
        else:
            available_days = balance.available_days
            current_balance = {
                "total_days": balance.total_days,
                "used_days": balance.used_days,
                "available_days": available_days,
                "carried_over": balance.carried_over,
                "year": balance.year,
            }
            if requested_days > available_days:
                conflicts.append({
                    "type": "insufficient_balance",
                    "message": f"Requested {requested_days} days but only {available_days} available",
                })

        overlapping = []
        if end_date >= start_date:
            overlapping = find_overlapping(self.db, employee_id, start_date, end_date)
        if overlapping:
            conflicts.append({
                "type": "overlapping_leave",
                "message": f"Overlaps with {len(overlapping)} existing leave request(s)",
            })

        return {
            "leave_type": {"id": leave_type.id, "name": leave_type.name},
            "current_balance": current_balance,
            "requested_days": requested_days,
            "available_days": available_days,
            "is_allowed": not conflicts,
            "conflicts": conflicts,
            "overlapping_leaves": [
                {
                    "id": lr.id,
                    "start_date": lr.start_date,
                    "end_date": lr.end_date,
                    "status": lr.status,
                    "leave_type_name": lr.leave_type.name if lr.leave_type else None,
                }
                for lr in overlapping
            ],
        }

    def update(
        self,
        leave_id: int,
        employee_id: int,
        organization_id: int,
        changes: Dict[str, Any],
    ) -> LeaveRequest:
        """
        Edit a PENDING request owned by the caller.

        `changes` holds only the fields to change (leave_type_id,
        start_date, end_date, reason). Dates and overlap are re-validated
        against the merged values, excluding the request itself.
        """
        with rollback_on_error(self.db, self.logger, "update leave request", leave_request_id=leave_id):
            leave_request = self._get_request(leave_id, organization_id)
            if leave_request.employee_id != employee_id:
                raise ForbiddenError("You can only update your own leave requests")
            if leave_request.status != LeaveStatus.PENDING.value:
                raise InvalidStateError(
                    f"Cannot update leave request with status {leave_request.status}"
                )

            start_date = changes.get("start_date") or leave_request.start_date
            end_date = changes.get("end_date") or leave_request.end_date
            leave_type_id = changes.get("leave_type_id") or leave_request.leave_type_id
            validate_leave_dates(start_date, end_date)
            self._get_leave_type(organization_id, leave_type_id)
            total_days = self._count_days(start_date, end_date)
            validate_overlap(self.db, employee_id, start_date, end_date, exclude_leave_id=leave_id)

            values = {
                LeaveRequest.leave_type_id: leave_type_id,
                LeaveRequest.start_date: start_date,
                LeaveRequest.end_date: end_date,
                LeaveRequest.total_days: total_days,
                LeaveRequest.updated_at: now_utc(),
            }
            if "reason" in changes:
                values[LeaveRequest.reason] = _clean_text(changes["reason"], "reason")

            updated = self.db.query(LeaveRequest).filter(
                LeaveRequest.id == leave_id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
            ).update(values, synchronize_session=False)
            if updated == 0:
                raise InvalidStateError("Leave request is no longer pending")

            log_audit(
                self.db,
                actor_id=employee_id,
                organization_id=organization_id,
                action="LEAVE_UPDATE",
                entity_type="leave_request",
                entity_id=leave_id,
                meta={"start_date": start_date, "end_date": end_date, "total_days": total_days},
                commit=False,
            )
            self.db.commit()

        self.logger.info("leave request updated: leave_request_id=%s days=%s", leave_id, total_days)
        return self._get_request(leave_id, organization_id)

    def cancel(self, leave_id: int, employee_id: int, reason: Optional[str] = None) -> LeaveRequest:
        """
        Cancel the caller's own request.

        PENDING requests are simply closed. APPROVED requests give their
        days back to the balance in the same transaction.
        """
        reason = _clean_text(reason, "reason")

        with rollback_on_error(self.db, self.logger, "cancel leave request", leave_request_id=leave_id):
            actor = self._get_employee(employee_id)
            leave_request = self._get_request(leave_id, actor.organization_id)
            if leave_request.employee_id != employee_id:
                raise ForbiddenError("You can only cancel your own leave requests")

            before_status = leave_request.status
            if before_status not in ACTIVE_LEAVE_STATUSES:
                raise InvalidStateError(f"Cannot cancel leave request with status {before_status}")

            updated = self.db.query(LeaveRequest).filter(
                LeaveRequest.id == leave_id,
                LeaveRequest.status == before_status,
            ).update(
                {
                    LeaveRequest.status: LeaveStatus.CANCELLED.value,
                    LeaveRequest.cancelled_by_id: employee_id,
                    LeaveRequest.cancelled_at: now_utc(),
                    LeaveRequest.updated_at: now_utc(),
                },
                synchronize_session=False,
            )
            if updated == 0:
                raise InvalidStateError("Leave request status changed, please reload")

            if before_status == LeaveStatus.APPROVED.value:
                self.ledger.release(
                    leave_request.employee_id,
                    leave_request.leave_type_id,
                    leave_request.start_date.year,
                    leave_request.total_days,
                    commit=False,
                )

            if reason:
                self.db.add(LeaveComment(
                    leave_request_id=leave_id,
                    author_id=employee_id,
                    content=f"Leave cancelled by employee. Reason: {reason}",
                    is_internal=False,
                ))

            log_audit(
                self.db,
                actor_id=employee_id,
                organization_id=actor.organization_id,
                action="LEAVE_CANCEL",
                entity_type="leave_request",
                entity_id=leave_id,
                meta={"before_status": before_status, "reason": reason},
                commit=False,
            )
            self.db.commit()

        self.logger.info(
            "leave status transition: leave_request_id=%s before=%s after=CANCELLED action=cancel",
            leave_id, before_status,
        )
        return self._get_request(leave_id, actor.organization_id)

    def get_by_id(self, leave_id: int, employee_id: int) -> LeaveRequest:
        """Owner, or MANAGER and above in the same organization."""
        viewer = self._get_employee(employee_id)
        return self._get_viewable_request(leave_id, viewer)

    def list(
        self,
        employee_id: int,
        status: Optional[str] = None,
        leave_type_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[LeaveRequest], int]:
        """Own requests, newest first. Returns (items, total)."""
        validate_pagination(page, limit)
        query = (
            self.db.query(LeaveRequest)
            .options(joinedload(LeaveRequest.leave_type), joinedload(LeaveRequest.employee))
            .filter(LeaveRequest.employee_id == employee_id)
        )
        query = _apply_filters(query, status, leave_type_id, start_date, end_date)
        total = query.count()
        items = (
            query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    def list_pending_for_review(
        self,
        employee_id: int,
        leave_type_id: Optional[int] = None,
        department_id: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[LeaveRequest], int]:
        """
        PENDING requests in the reviewer's organization, oldest first.
        The reviewer's own requests are left out since they cannot act on them.
        """
        reviewer = self._get_employee(employee_id)
        if not role_at_least(reviewer.role, Role.MANAGER):
            raise ForbiddenError("Only managers and above can review leave requests")
        validate_pagination(page, limit)

        query = (
            self.db.query(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .options(joinedload(LeaveRequest.leave_type), joinedload(LeaveRequest.employee))
            .filter(
                Employee.organization_id == reviewer.organization_id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
                LeaveRequest.employee_id != reviewer.id,
            )
        )
        if leave_type_id is not None:
            query = query.filter(LeaveRequest.leave_type_id == leave_type_id)
        if department_id is not None:
            query = query.filter(Employee.department_id == department_id)
        total = query.count()
        items = (
            query.order_by(LeaveRequest.created_at.asc(), LeaveRequest.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    def add_comment(self, leave_id: int, author_id: int, content: str, is_internal: bool = False) -> LeaveComment:
        content = _clean_text(content, "content")
        if not content:
            raise ValidationError("Comment cannot be empty")

        with rollback_on_error(self.db, self.logger, "add leave comment", leave_request_id=leave_id):
            author = self._get_employee(author_id)
            self._get_viewable_request(leave_id, author)
            if is_internal and not role_at_least(author.role, Role.MANAGER):
                raise ForbiddenError("Only managers and above can add internal comments")

            comment = LeaveComment(
                leave_request_id=leave_id,
                author_id=author_id,
                content=content,
                is_internal=is_internal,
            )
            self.db.add(comment)
            self.db.commit()
            self.db.refresh(comment)
        return comment

    def list_comments(self, leave_id: int, viewer_id: int) -> List[LeaveComment]:
        """Comments oldest first; internal ones only for MANAGER and above."""
        viewer = self._get_employee(viewer_id)
        self._get_viewable_request(leave_id, viewer)
        query = (
            self.db.query(LeaveComment)
            .options(joinedload(LeaveComment.author))
            .filter(LeaveComment.leave_request_id == leave_id)
        )
        if not role_at_least(viewer.role, Role.MANAGER):
            query = query.filter(LeaveComment.is_internal == False)  # noqa: E712
        return query.order_by(LeaveComment.created_at, LeaveComment.id).all()


def _apply_filters(query, status, leave_type_id, start_date, end_date):
    if status is not None:
        query = query.filter(LeaveRequest.status == getattr(status, "value", status))
    if leave_type_id is not None:
        query = query.filter(LeaveRequest.leave_type_id == leave_type_id)
    if start_date is not None:
        query = query.filter(LeaveRequest.start_date >= start_date)
    if end_date is not None:
        query = query.filter(LeaveRequest.end_date <= end_date)
    return query
