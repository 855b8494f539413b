"""
Leave balance ledger.

One row per (employee, leave type, year). `used_days` only moves through
reserve (approval) and release (cancellation of an approved request);
HR manages allocations through assign/bulk_assign/update/delete.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from app.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    LeaveManagementError,
    NotFoundError,
    ValidationError,
)
from app.db.session import rollback_on_error
from app.models.employee import Employee
from app.models.leave import LeaveBalance, LeaveType
from app.services.audit_service import log_audit

MAX_BULK_EMPLOYEES = 100
MAX_ALLOCATION_DAYS = 365


class LeaveBalanceLedger:
    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _balance_query(self, employee_id: int, leave_type_id: int, year: int):
        return self.db.query(LeaveBalance).filter(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )

    def find_balance(self, employee_id: int, leave_type_id: int, year: int) -> Optional[LeaveBalance]:
        return self._balance_query(employee_id, leave_type_id, year).populate_existing().first()

    def get_balance(self, employee_id: int, leave_type_id: int, year: int) -> LeaveBalance:
        balance = self.find_balance(employee_id, leave_type_id, year)
        if balance is None:
            raise NotFoundError(
                f"No leave balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
            )
        return balance

    def get_by_id(self, organization_id: int, balance_id: int) -> LeaveBalance:
        balance = (
            self.db.query(LeaveBalance)
            .join(Employee, LeaveBalance.employee_id == Employee.id)
            .options(joinedload(LeaveBalance.leave_type), joinedload(LeaveBalance.employee))
            .filter(LeaveBalance.id == balance_id, Employee.organization_id == organization_id)
            .first()
        )
        if balance is None:
            raise NotFoundError(f"Leave balance with id {balance_id} not found")
        return balance

    def list_for_employee(
        self,
        organization_id: int,
        employee_id: int,
        year: Optional[int] = None,
        leave_type_id: Optional[int] = None,
    ) -> List[LeaveBalance]:
        self._get_employee(organization_id, employee_id, require_active=False)
        query = (
            self.db.query(LeaveBalance)
            .options(joinedload(LeaveBalance.leave_type))
            .filter(LeaveBalance.employee_id == employee_id)
        )
        if year is not None:
            query = query.filter(LeaveBalance.year == year)
        if leave_type_id is not None:
            query = query.filter(LeaveBalance.leave_type_id == leave_type_id)
        return query.order_by(LeaveBalance.year.desc(), LeaveBalance.leave_type_id).all()

    def _get_employee(self, organization_id: int, employee_id: int, require_active: bool = True) -> Employee:
        query = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.organization_id == organization_id,
        )
        if require_active:
            query = query.filter(Employee.active == True)  # noqa: E712
        employee = query.first()
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found or inactive in this organization")
        return employee

    def _get_leave_type(self, organization_id: int, leave_type_id: int) -> LeaveType:
        leave_type = self.db.query(LeaveType).filter(
            LeaveType.id == leave_type_id,
            LeaveType.organization_id == organization_id,
        ).first()
        if leave_type is None:
            raise NotFoundError(f"Leave type with id {leave_type_id} not found")
        return leave_type

    # ------------------------------------------------------------------
    # Reserve / release (driven by the approval workflow)
    # ------------------------------------------------------------------

    def reserve(self, employee_id: int, leave_type_id: int, year: int, days: int, commit: bool = True) -> LeaveBalance:
        """
        Debit `days` from the balance.

        A single conditional UPDATE guarded by available >= days, so two
        concurrent approvals cannot overdraw the same row.
        """
        if days <= 0:
            raise ValidationError("Days to reserve must be positive")

        with rollback_on_error(self.db, self.logger, "reserve leave balance",
                               employee_id=employee_id, leave_type_id=leave_type_id, year=year):
            available = LeaveBalance.total_days + LeaveBalance.carried_over - LeaveBalance.used_days
            updated = (
                self._balance_query(employee_id, leave_type_id, year)
                .filter(available >= days)
                .update({LeaveBalance.used_days: LeaveBalance.used_days + days}, synchronize_session=False)
            )
            if updated == 0:
                balance = self.find_balance(employee_id, leave_type_id, year)
                if balance is None:
                    raise InsufficientBalanceError(
                        f"No leave balance allocated for year {year}",
                        details={"requested_days": days, "available_days": 0},
                    )
                raise InsufficientBalanceError(
                    f"Insufficient leave balance. Available: {balance.available_days} days, requested: {days} days",
                    details={"requested_days": days, "available_days": balance.available_days},
                )
            if commit:
                self.db.commit()

        self.logger.info(
            "leave balance reserved: employee_id=%s leave_type_id=%s year=%s days=%s",
            employee_id, leave_type_id, year, days,
        )
        return self.find_balance(employee_id, leave_type_id, year)

    def release(self, employee_id: int, leave_type_id: int, year: int, days: int, commit: bool = True) -> LeaveBalance:
        """Credit `days` back; used_days never drops below zero."""
        if days <= 0:
            raise ValidationError("Days to release must be positive")

        with rollback_on_error(self.db, self.logger, "release leave balance",
                               employee_id=employee_id, leave_type_id=leave_type_id, year=year):
            updated = self._balance_query(employee_id, leave_type_id, year).update(
                {
                    LeaveBalance.used_days: case(
                        (LeaveBalance.used_days > days, LeaveBalance.used_days - days),
                        else_=0,
                    )
                },
                synchronize_session=False,
            )
            if updated == 0:
                raise NotFoundError(
                    f"No leave balance for employee {employee_id}, leave type {leave_type_id}, year {year}"
                )
            if commit:
                self.db.commit()

        self.logger.info(
            "leave balance released: employee_id=%s leave_type_id=%s year=%s days=%s",
            employee_id, leave_type_id, year, days,
        )
        return self.find_balance(employee_id, leave_type_id, year)

    # ------------------------------------------------------------------
    # HR management
    # ------------------------------------------------------------------

    def assign(
        self,
        organization_id: int,
        employee_id: int,
        leave_type_id: int,
        year: int,
        total_days: int,
        carried_over: int = 0,
        overwrite: bool = False,
        actor_id: Optional[int] = None,
    ) -> LeaveBalance:
        """
        Create the balance for (employee, leave type, year).

        An existing row is a Conflict unless `overwrite` is set, in which
        case its totals are replaced; used_days is kept and the result must
        not leave the balance negative.
        """
        _validate_allocation(total_days, carried_over)

        with rollback_on_error(self.db, self.logger, "assign leave balance",
                               employee_id=employee_id, leave_type_id=leave_type_id, year=year):
            employee = self._get_employee(organization_id, employee_id)
            leave_type = self._get_leave_type(organization_id, leave_type_id)

            balance = self.find_balance(employee_id, leave_type_id, year)
            if balance is not None:
                if not overwrite:
                    raise ConflictError(
                        f"Leave balance already exists for {employee.full_name} "
                        f"({leave_type.name}, {year})"
                    )
                if total_days + carried_over - balance.used_days < 0:
                    raise ValidationError(
                        f"Allocation of {total_days + carried_over} days is below the "
                        f"{balance.used_days} days already used"
                    )
                balance.total_days = total_days
                balance.carried_over = carried_over
                action = "OVERWRITE"
            else:
                balance = LeaveBalance(
                    employee_id=employee_id,
                    leave_type_id=leave_type_id,
                    year=year,
                    total_days=total_days,
                    used_days=0,
                    carried_over=carried_over,
                )
                self.db.add(balance)
                action = "ASSIGN"

            try:
                self.db.flush()
            except IntegrityError:
                # Concurrent assign for the same key won the unique constraint
                raise ConflictError(
                    f"Leave balance already exists for employee {employee_id} ({leave_type.name}, {year})"
                )

            if actor_id is not None:
                log_audit(
                    self.db,
                    actor_id=actor_id,
                    organization_id=organization_id,
                    action=action,
                    entity_type="leave_balance",
                    entity_id=balance.id,
                    meta={
                        "employee_id": employee_id,
                        "leave_type_id": leave_type_id,
                        "year": year,
                        "total_days": total_days,
                        "carried_over": carried_over,
                    },
                    commit=False,
                )
            self.db.commit()
            self.db.refresh(balance)

        self.logger.info(
            "leave balance %s: balance_id=%s employee_id=%s leave_type_id=%s year=%s total_days=%s",
            action.lower(), balance.id, employee_id, leave_type_id, year, total_days,
        )
        return balance

    def bulk_assign(
        self,
        organization_id: int,
        employee_ids: List[int],
        leave_type_id: int,
        year: int,
        total_days: int,
        carried_over: int = 0,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Assign the same allocation to many employees.

        Each employee is committed on its own; a failure is recorded in
        `failed` and never aborts the rest of the batch.
        """
        if not employee_ids:
            raise ValidationError("At least one employee is required")
        if len(employee_ids) > MAX_BULK_EMPLOYEES:
            raise ValidationError(f"Cannot assign to more than {MAX_BULK_EMPLOYEES} employees at once")
        _validate_allocation(total_days, carried_over)
        self._get_leave_type(organization_id, leave_type_id)

        names = {
            emp.id: emp.full_name
            for emp in self.db.query(Employee).filter(
                Employee.id.in_(employee_ids),
                Employee.organization_id == organization_id,
            )
        }

        successful: List[Dict[str, Any]] = []
        failed: List[Dict[str, Any]] = []
        for employee_id in employee_ids:
            employee_name = names.get(employee_id, "Unknown")
            try:
                balance = self.assign(
                    organization_id,
                    employee_id,
                    leave_type_id,
                    year,
                    total_days,
                    carried_over,
                    actor_id=actor_id,
                )
            except LeaveManagementError as exc:
                failed.append({"employee_id": employee_id, "employee_name": employee_name, "error": exc.message})
                continue
            successful.append({
                "employee_id": employee_id,
                "employee_name": employee_name,
                "leave_balance_id": balance.id,
            })

        self.logger.info(
            "bulk leave balance assign: leave_type_id=%s year=%s total=%s successful=%s failed=%s",
            leave_type_id, year, len(employee_ids), len(successful), len(failed),
        )
        return {
            "successful": successful,
            "failed": failed,
            "summary": {
                "total": len(employee_ids),
                "successful": len(successful),
                "failed": len(failed),
            },
        }

    def update(
        self,
        organization_id: int,
        balance_id: int,
        total_days: Optional[int] = None,
        carried_over: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> LeaveBalance:
        with rollback_on_error(self.db, self.logger, "update leave balance", balance_id=balance_id):
            balance = self.get_by_id(organization_id, balance_id)
            new_total = balance.total_days if total_days is None else total_days
            new_carried = balance.carried_over if carried_over is None else carried_over
            _validate_allocation(new_total, new_carried)
            if new_total + new_carried - balance.used_days < 0:
                raise ValidationError(
                    f"Allocation of {new_total + new_carried} days is below the "
                    f"{balance.used_days} days already used"
                )
            before = {"total_days": balance.total_days, "carried_over": balance.carried_over}
            balance.total_days = new_total
            balance.carried_over = new_carried
            if actor_id is not None:
                log_audit(
                    self.db,
                    actor_id=actor_id,
                    organization_id=organization_id,
                    action="UPDATE",
                    entity_type="leave_balance",
                    entity_id=balance.id,
                    meta={"before": before, "after": {"total_days": new_total, "carried_over": new_carried}},
                    commit=False,
                )
            self.db.commit()
            self.db.refresh(balance)
        return balance

    def delete(self, organization_id: int, balance_id: int, actor_id: Optional[int] = None) -> None:
        with rollback_on_error(self.db, self.logger, "delete leave balance", balance_id=balance_id):
            balance = self.get_by_id(organization_id, balance_id)
            if balance.used_days > 0:
                raise ConflictError(
                    f"Cannot delete a leave balance with {balance.used_days} used days"
                )
            if actor_id is not None:
                log_audit(
                    self.db,
                    actor_id=actor_id,
                    organization_id=organization_id,
                    action="DELETE",
                    entity_type="leave_balance",
                    entity_id=balance.id,
                    meta={
                        "employee_id": balance.employee_id,
                        "leave_type_id": balance.leave_type_id,
                        "year": balance.year,
                    },
                    commit=False,
                )
            self.db.delete(balance)
            self.db.commit()
        self.logger.info("leave balance deleted: balance_id=%s", balance_id)


def _validate_allocation(total_days: int, carried_over: int) -> None:
    if not 0 <= total_days <= MAX_ALLOCATION_DAYS:
        raise ValidationError(f"total_days must be between 0 and {MAX_ALLOCATION_DAYS}")
    if not 0 <= carried_over <= MAX_ALLOCATION_DAYS:
        raise ValidationError(f"carried_over must be between 0 and {MAX_ALLOCATION_DAYS}")
