"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Boolean,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from app.db.base import Base


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Statuses that hold a date range and take part in overlap checks
ACTIVE_LEAVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    max_days_per_year = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    organization = relationship("Organization", back_populates="leave_types")

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_leave_types_organization_name"),
        CheckConstraint("max_days_per_year >= 1 AND max_days_per_year <= 365", name="check_max_days_per_year_range"),
    )


class LeaveBalance(Base):
    """
    Leave ledger row: one per (employee_id, leave_type_id, year).
    available = total_days + carried_over - used_days, never negative.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    year = Column(Integer, nullable=False, index=True)
    total_days = Column(Integer, nullable=False, default=0)
    used_days = Column(Integer, nullable=False, default=0)
    carried_over = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    employee = relationship("Employee", backref="leave_balances")
    leave_type = relationship("LeaveType")

    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balances_employee_type_year"),
        CheckConstraint("used_days >= 0", name="check_used_days_non_negative"),
    )

    @hybrid_property
    def available_days(self):
        return self.total_days + self.carried_over - self.used_days


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(Integer, ForeignKey("leave_types.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=LeaveStatus.PENDING.value, server_default=text("'PENDING'"))
    approved_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    leave_type = relationship("LeaveType")
    approved_by = relationship("Employee", foreign_keys=[approved_by_id])
    rejected_by = relationship("Employee", foreign_keys=[rejected_by_id])
    cancelled_by = relationship("Employee", foreign_keys=[cancelled_by_id])
    comments = relationship(
        "LeaveComment",
        back_populates="leave_request",
        cascade="all, delete-orphan",
        order_by="LeaveComment.id",
    )

    # Indexes
    __table_args__ = (
        Index('ix_leave_requests_employee_dates', 'employee_id', 'start_date', 'end_date'),
        CheckConstraint('start_date <= end_date', name='check_start_date_le_end_date'),
    )


class LeaveComment(Base):
    __tablename__ = "leave_comments"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    leave_request = relationship("LeaveRequest", back_populates="comments")
    author = relationship("Employee", foreign_keys=[author_id])
