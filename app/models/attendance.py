"""
Attendance & Holiday models: one attendance row per employee per calendar day.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum

from sqlalchemy import (Boolean, Column, Date, DateTime, Float, ForeignKey,
                        Index, Integer, String, UniqueConstraint)
from sqlalchemy.orm import relationship

from app.db.base import Base


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LEAVE = "LEAVE"
    HOLIDAY = "HOLIDAY"
    HALF_DAY = "HALF_DAY"
    WEEKEND = "WEEKEND"


# Statuses that a check-out may re-derive from the worked hours
WORKED_STATUSES = {AttendanceStatus.PRESENT, AttendanceStatus.HALF_DAY, AttendanceStatus.ABSENT}


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("emp_id", "attendance_date", name="uq_attendance_emp_date"),
        Index("ix_attendance_date_status", "attendance_date", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    emp_id: int = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)  # type: ignore[assignment]
    attendance_date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    check_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    check_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default=AttendanceStatus.ABSENT.value,
        server_default=AttendanceStatus.ABSENT.value,
    )
    work_hours: float = Column(Float, nullable=False, default=0.0)  # type: ignore[assignment]
    is_leave: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    leave_request_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    remarks: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    employee = relationship("Employee", lazy="joined")

    @property
    def employee_code(self) -> str | None:
        return self.employee.employee_code if self.employee is not None else None

    @property
    def employee_name(self) -> str | None:
        return self.employee.full_name if self.employee is not None else None


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (UniqueConstraint("holiday_name", "holiday_date", name="uq_holidays_name_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    holiday_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    holiday_date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    is_optional: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    # "ALL" or a comma-separated list of department ids
    applicable_depts: str = Column(String(500), nullable=False, default="ALL")  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]

    def applies_to(self, dept_id: int | None) -> bool:
        if self.applicable_depts.strip().upper() == "ALL":
            return True
        if dept_id is None:
            return False
        ids = {p.strip() for p in self.applicable_depts.split(",") if p.strip()}
        return str(dept_id) in ids
