"""
Daily check-in / check-out: one attendance row per employee per local day.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, NotFoundError
from app.models.attendance import Attendance, AttendanceStatus, Holiday
from app.models.employee import Employee
from app.models.leave import LeaveRequest, LeaveStatus
from app.schemas.attendance import AttendanceCounts, AttendanceSummary
from app.services.leave_service import list_balances
from app.services.work_schedule import (apply_worked_hours,
                                        get_or_create_settings, is_on_time,
                                        is_weekend, local_today)

logger = logging.getLogger(__name__)


async def _find_day(db: AsyncSession, emp_id: int, day: date) -> Attendance | None:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.emp_id == emp_id, Attendance.attendance_date == day)
        .with_for_update(of=Attendance)
    )
    return result.scalar_one_or_none()


async def reload_attendance(db: AsyncSession, attendance_id: int) -> Attendance:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.id == attendance_id)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise NotFoundError("Attendance record not found")
    return record


async def resolve_day_status(db: AsyncSession, employee: Employee, day: date) -> AttendanceStatus:
    """LEAVE beats HOLIDAY beats WEEKEND; anything else is a PRESENT day.

    Optional holidays are ignored: employees who take one file leave for it.
    """
    on_leave = await db.execute(
        select(LeaveRequest.id)
        .where(
            LeaveRequest.emp_id == employee.id,
            LeaveRequest.status == LeaveStatus.APPROVED.value,
            LeaveRequest.start_date <= day,
            LeaveRequest.end_date >= day,
        )
        .limit(1)
    )
    if on_leave.scalar_one_or_none() is not None:
        return AttendanceStatus.LEAVE

    holidays = await db.execute(
        select(Holiday).where(Holiday.holiday_date == day, Holiday.is_optional.is_(False))
    )
    if any(h.applies_to(employee.dept_id) for h in holidays.scalars().all()):
        return AttendanceStatus.HOLIDAY

    if is_weekend(day):
        return AttendanceStatus.WEEKEND
    return AttendanceStatus.PRESENT


async def check_in(db: AsyncSession, employee: Employee, remarks: str | None = None) -> Attendance:
    att_settings = await get_or_create_settings(db)
    today = local_today(att_settings)
    now = datetime.now(timezone.utc)

    record = await _find_day(db, employee.id, today)
    if record is not None and record.check_in is not None:
        raise AppError("Already checked in today")

    status = await resolve_day_status(db, employee, today)
    if record is None:
        record = Attendance(emp_id=employee.id, attendance_date=today, work_hours=0.0)
        db.add(record)
    record.check_in = now
    record.status = status.value
    if remarks:
        record.remarks = remarks
    await db.commit()

    logger.info("Check-in: employee %s on %s (%s)", employee.employee_code, today, status.value)
    return await reload_attendance(db, record.id)


async def check_out(db: AsyncSession, employee: Employee, remarks: str | None = None) -> Attendance:
    att_settings = await get_or_create_settings(db)
    today = local_today(att_settings)

    record = await _find_day(db, employee.id, today)
    if record is None:
        raise NotFoundError("No check-in record found for today")
    if record.check_in is None:
        raise AppError("You need to check in first")
    if record.check_out is not None:
        raise AppError("Already checked out today")

    record.check_out = datetime.now(timezone.utc)
    if remarks:
        record.remarks = remarks
    apply_worked_hours(record, att_settings)
    await db.commit()

    logger.info(
        "Check-out: employee %s on %s (%.2f h, %s)",
        employee.employee_code, today, record.work_hours, record.status,
    )
    return await reload_attendance(db, record.id)


async def summarise(db: AsyncSession, employee: Employee | None) -> AttendanceSummary:
    """Current-year counters, remaining balances and today's check-in state."""
    att_settings = await get_or_create_settings(db)
    today = local_today(att_settings)
    year = today.year
    if employee is None:
        return AttendanceSummary(
            year=year,
            stats=AttendanceCounts(),
            leave_balance={},
            message="No employee profile found. Please contact HR to set up your profile.",
        )

    rows = await db.execute(
        select(Attendance.status, func.count(Attendance.id))
        .where(
            Attendance.emp_id == employee.id,
            Attendance.attendance_date >= date(year, 1, 1),
            Attendance.attendance_date <= date(year, 12, 31),
        )
        .group_by(Attendance.status)
    )
    by_status = {status: count for status, count in rows.all()}

    check_ins = await db.execute(
        select(Attendance.check_in).where(
            Attendance.emp_id == employee.id,
            Attendance.status == AttendanceStatus.PRESENT.value,
            Attendance.check_in.is_not(None),
            Attendance.attendance_date >= date(year, 1, 1),
        )
    )
    late = sum(1 for (ts,) in check_ins.all() if not is_on_time(ts, att_settings))

    balances = await list_balances(db, employee.id, year)
    today_row = await db.execute(
        select(Attendance).where(
            Attendance.emp_id == employee.id, Attendance.attendance_date == today
        )
    )
    record = today_row.scalar_one_or_none()

    return AttendanceSummary(
        year=year,
        stats=AttendanceCounts(
            present=by_status.get(AttendanceStatus.PRESENT.value, 0),
            absent=by_status.get(AttendanceStatus.ABSENT.value, 0),
            leave=by_status.get(AttendanceStatus.LEAVE.value, 0),
            half_day=by_status.get(AttendanceStatus.HALF_DAY.value, 0),
            late=late,
        ),
        leave_balance={b.leave_code: max(0.0, b.available) for b in balances},
        checked_in_today=record is not None and record.check_in is not None,
        checked_out_today=record is not None and record.check_out is not None,
        check_in_time=record.check_in if record is not None else None,
    )
