"""
Organization (tenant) model
"""
from sqlalchemy import Column, Integer, String, DateTime, text
from sqlalchemy.orm import relationship
from app.db.base import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    domain = Column(String, unique=True, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    departments = relationship("Department", back_populates="organization")
    employees = relationship("Employee", back_populates="organization")
    leave_types = relationship("LeaveType", back_populates="organization")
