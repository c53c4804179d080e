"""Pydantic schemas for attendance records, the work schedule and health."""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from app.models.attendance import AttendanceStatus

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_OFFSET_RE = re.compile(r"^[+-](0\d|1[0-4]):[0-5]\d$")


# ── Check-in / out ──────────────────────────────────────────────────
class CheckRequest(BaseModel):
    remarks: str | None = Field(default=None, max_length=500)


# ── Attendance ──────────────────────────────────────────────────────
class AttendanceCreate(BaseModel):
    emp_id: int
    attendance_date: date
    check_in: datetime | None = None
    check_out: datetime | None = None
    status: AttendanceStatus = AttendanceStatus.PRESENT
    remarks: str | None = Field(default=None, max_length=500)


class AttendanceUpdate(BaseModel):
    check_in: datetime | None = None
    check_out: datetime | None = None
    status: AttendanceStatus | None = None
    remarks: str | None = Field(default=None, max_length=500)


class BulkAttendanceCreate(BaseModel):
    records: list[AttendanceCreate] = Field(min_length=1, max_length=500)


class BulkAttendanceResult(BaseModel):
    created: int
    skipped: list[dict]


class AttendanceRead(BaseModel):
    id: int
    emp_id: int
    employee_code: str | None = None
    employee_name: str | None = None
    attendance_date: date
    check_in: datetime | None
    check_out: datetime | None
    status: AttendanceStatus
    work_hours: float
    is_leave: bool
    leave_request_id: int | None
    remarks: str | None

    model_config = {"from_attributes": True}


class TodayAttendanceResponse(BaseModel):
    date: date
    total: int
    present: int
    absent: int
    on_leave: int
    records: list[AttendanceRead]


class AttendanceCounts(BaseModel):
    present: int = 0
    absent: int = 0
    leave: int = 0
    half_day: int = 0
    late: int = 0


class AttendanceSummary(BaseModel):
    year: int
    stats: AttendanceCounts
    leave_balance: dict[str, float]
    checked_in_today: bool = False
    checked_out_today: bool = False
    check_in_time: datetime | None = None
    message: str | None = None


# ── Attendance Settings ────────────────────────────────────────────
class AttendanceSettingsRead(BaseModel):
    work_start: str
    work_end: str
    grace_minutes: int
    half_day_hours: float
    full_day_hours: float
    timezone_offset: str

    model_config = {"from_attributes": True}


class AttendanceSettingsUpdate(BaseModel):
    work_start: str | None = None
    work_end: str | None = None
    grace_minutes: int | None = Field(default=None, ge=0, le=240)
    half_day_hours: float | None = Field(default=None, gt=0, le=24)
    full_day_hours: float | None = Field(default=None, gt=0, le=24)
    timezone_offset: str | None = None

    @field_validator("work_start", "work_end")
    @classmethod
    def _hhmm(cls, v: str | None) -> str | None:
        if v is not None and not _HHMM_RE.match(v):
            raise ValueError("Time must be HH:MM (24h)")
        return v

    @field_validator("timezone_offset")
    @classmethod
    def _offset(cls, v: str | None) -> str | None:
        if v is not None and not _OFFSET_RE.match(v):
            raise ValueError("Timezone offset must look like +05:00")
        return v


# ── Health ─────────────────────────────────────────────────────────
class HealthResponse(BaseModel):
    db: bool
    redis: bool


# ── Generic ────────────────────────────────────────────────────────
class MessageResponse(BaseModel):
    message: str


class DeleteResponse(BaseModel):
    success: bool
    message: str
