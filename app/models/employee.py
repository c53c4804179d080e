"""
Department & Employee models: the organisation chart.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    dept_name: str = Column(String(100), unique=True, nullable=False)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    # employees <-> departments is a cycle; the constraint is added after both tables exist
    dept_head_id: int | None = Column(  # type: ignore[assignment]
        Integer,
        ForeignKey("employees.id", use_alter=True, name="fk_departments_dept_head", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class Employee(Base):
    __tablename__ = "employees"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)  # type: ignore[assignment]
    dept_id: int | None = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)  # type: ignore[assignment]
    designation: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    hire_date: date = Column(Date, nullable=False, default=date.today)  # type: ignore[assignment]
    employee_code: str = Column(String(20), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    reporting_manager_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", lazy="joined")
    department = relationship("Department", foreign_keys=[dept_id], lazy="joined")

    @property
    def full_name(self) -> str:
        if self.user is None:
            return "Unknown"
        return self.user.full_name or self.user.username

    @property
    def email(self) -> str | None:
        return self.user.email if self.user is not None else None

    @property
    def department_name(self) -> str | None:
        return self.department.dept_name if self.department is not None else None
