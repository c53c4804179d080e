"""
Attendance Settings model: singleton table for the admin-configurable work schedule.

Only one row should ever exist. The admin updates it via the settings API;
check-in/check-out and the performance report read it to decide the local
day, on-time arrivals and how worked hours map onto PRESENT / HALF_DAY.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Integer, String

from app.db.base import Base


class AttendanceSettings(Base):
    __tablename__ = "attendance_settings"

    id: int = Column(Integer, primary_key=True, default=1)  # type: ignore[assignment]
    work_start: str = Column(String(5), nullable=False, default="09:00")  # type: ignore[assignment]
    work_end: str = Column(String(5), nullable=False, default="17:00")  # type: ignore[assignment]
    grace_minutes: int = Column(Integer, nullable=False, default=15)  # type: ignore[assignment]
    half_day_hours: float = Column(Float, nullable=False, default=4.0)  # type: ignore[assignment]
    full_day_hours: float = Column(Float, nullable=False, default=8.0)  # type: ignore[assignment]
    timezone_offset: str = Column(String(6), nullable=False, default="+00:00")  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
