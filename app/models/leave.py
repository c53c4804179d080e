"""
Leave models: types, per-year balances and requests.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import (Boolean, CheckConstraint, Column, Date, DateTime,
                        Float, ForeignKey, Index, Integer, String,
                        UniqueConstraint)
from sqlalchemy.orm import relationship

from app.db.base import Base


class LeaveStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaveType(Base):
    __tablename__ = "leave_types"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    leave_code: str = Column(String(10), unique=True, nullable=False)  # type: ignore[assignment]
    leave_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    is_carry_forward: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    default_annual_quota: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    requires_approval: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    max_consecutive_days: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]  # 0 = unlimited


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("emp_id", "leave_type_id", "year", name="uq_leave_balances_emp_type_year"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    emp_id: int = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)  # type: ignore[assignment]
    leave_type_id: int = Column(Integer, ForeignKey("leave_types.id"), nullable=False)  # type: ignore[assignment]
    year: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    allocated_leaves: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    used_leaves: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    pending_leaves: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]
    carried_forward: float = Column(Float, nullable=False, default=0)  # type: ignore[assignment]

    leave_type = relationship("LeaveType", lazy="joined")

    @property
    def available(self) -> float:
        return (
            (self.allocated_leaves or 0)
            + (self.carried_forward or 0)
            - (self.used_leaves or 0)
            - (self.pending_leaves or 0)
        )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_leave_requests_date_order"),
        Index("ix_leave_requests_emp_status", "emp_id", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    emp_id: int = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    leave_type_id: int = Column(Integer, ForeignKey("leave_types.id"), nullable=False)  # type: ignore[assignment]
    start_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    duration: float = Column(Float, nullable=False)  # type: ignore[assignment]
    reason: str = Column(String(500), nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=LeaveStatus.PENDING.value,
        server_default=LeaveStatus.PENDING.value,
        index=True,
    )
    is_half_day: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    contact_during_leave: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    applied_date: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    last_modified: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    approved_by: int | None = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # type: ignore[assignment]
    rejection_reason: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]

    employee = relationship("Employee", lazy="joined")
    leave_type = relationship("LeaveType", lazy="joined")

    @property
    def employee_code(self) -> str | None:
        return self.employee.employee_code if self.employee is not None else None

    @property
    def employee_name(self) -> str | None:
        return self.employee.full_name if self.employee is not None else None

    @property
    def leave_code(self) -> str | None:
        return self.leave_type.leave_code if self.leave_type is not None else None

    @property
    def leave_name(self) -> str | None:
        return self.leave_type.leave_name if self.leave_type is not None else None
