"""
Work schedule helpers: the attendance settings singleton, local day
boundaries, on-time checks and worked-hours derivation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.attendance import WORKED_STATUSES, Attendance, AttendanceStatus
from app.models.attendance_settings import AttendanceSettings

logger = logging.getLogger(__name__)


async def get_or_create_settings(db: AsyncSession) -> AttendanceSettings:
    """Fetch the singleton settings row, creating it with defaults if absent."""
    result = await db.execute(select(AttendanceSettings).limit(1))
    att_settings = result.scalar_one_or_none()
    if att_settings is None:
        att_settings = AttendanceSettings(
            id=1,
            work_start="09:00",
            work_end="17:00",
            grace_minutes=15,
            half_day_hours=4.0,
            full_day_hours=8.0,
            timezone_offset="+00:00",
        )
        db.add(att_settings)
        await db.flush()
        logger.info("Created default attendance settings")
    return att_settings


# ── Time helpers ────────────────────────────────────────────────────
def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_offset(tz_offset: str) -> timezone:
    sign = 1 if tz_offset[0] == "+" else -1
    parts = tz_offset[1:].split(":")
    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) > 1 else 0
    return timezone(timedelta(hours=sign * hours, minutes=sign * minutes))


def local_now(att_settings: AttendanceSettings) -> datetime:
    return datetime.now(timezone.utc).astimezone(parse_offset(att_settings.timezone_offset))


def local_today(att_settings: AttendanceSettings) -> date:
    return local_now(att_settings).date()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day in [start, end]."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _parse_hhmm(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def is_on_time(check_in: datetime, att_settings: AttendanceSettings) -> bool:
    """True when *check_in* is at or before work_start + grace, in local time."""
    local = ensure_utc(check_in).astimezone(parse_offset(att_settings.timezone_offset))
    start = _parse_hhmm(att_settings.work_start)
    cutoff = local.replace(
        hour=start.hour, minute=start.minute, second=0, microsecond=0
    ) + timedelta(minutes=att_settings.grace_minutes)
    return local <= cutoff


# ── Worked hours ────────────────────────────────────────────────────
def hours_between(check_in: datetime, check_out: datetime) -> float:
    delta = ensure_utc(check_out) - ensure_utc(check_in)
    return round(max(delta.total_seconds(), 0) / 3600, 2)


def apply_worked_hours(record: Attendance, att_settings: AttendanceSettings) -> None:
    """Derive work_hours, and for worked days the status, once both stamps exist.

    hours >= full day -> PRESENT, half day <= hours < full day -> HALF_DAY;
    shorter days keep their status.  LEAVE / HOLIDAY / WEEKEND never change.
    """
    if record.check_in is None or record.check_out is None:
        return
    hours = hours_between(record.check_in, record.check_out)
    record.work_hours = hours
    if AttendanceStatus(record.status) not in WORKED_STATUSES:
        return
    if hours >= att_settings.full_day_hours:
        record.status = AttendanceStatus.PRESENT.value
    elif hours >= att_settings.half_day_hours:
        record.status = AttendanceStatus.HALF_DAY.value
