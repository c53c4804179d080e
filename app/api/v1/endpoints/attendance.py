"""
Attendance endpoints: self-service check-in / check-out plus the
record views and manual corrections used by managers and admins.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (ensure_self_or, get_current_active_user,
                             get_current_employee, get_db,
                             get_employee_for_user, require_capability)
from app.core.exceptions import AppError, NotFoundError
from app.core.roles import Capability
from app.models.attendance import Attendance, AttendanceStatus
from app.models.employee import Employee
from app.models.user import User
from app.schemas.attendance import (AttendanceCreate, AttendanceRead,
                                    AttendanceSummary, AttendanceUpdate,
                                    BulkAttendanceCreate, BulkAttendanceResult,
                                    CheckRequest, DeleteResponse,
                                    TodayAttendanceResponse)
from app.services import attendance_service
from app.services.work_schedule import (apply_worked_hours, ensure_utc,
                                        get_or_create_settings, local_today)

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)

require_org_admin = require_capability(Capability.MANAGE_ORGANISATION)
require_team_view = require_capability(Capability.VIEW_TEAM)


def _ordered(stmt):
    return stmt.order_by(Attendance.attendance_date.desc(), Attendance.emp_id)


def _in_range(stmt, start_date: date | None, end_date: date | None):
    if start_date is not None:
        stmt = stmt.where(Attendance.attendance_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Attendance.attendance_date <= end_date)
    return stmt


async def _day_view(db: AsyncSession, day: date) -> TodayAttendanceResponse:
    result = await db.execute(
        select(Attendance).where(Attendance.attendance_date == day).order_by(Attendance.emp_id)
    )
    records = list(result.scalars().all())
    statuses = [r.status for r in records]
    return TodayAttendanceResponse(
        date=day,
        total=len(records),
        present=sum(
            1 for s in statuses
            if s in (AttendanceStatus.PRESENT.value, AttendanceStatus.HALF_DAY.value)
        ),
        absent=statuses.count(AttendanceStatus.ABSENT.value),
        on_leave=statuses.count(AttendanceStatus.LEAVE.value),
        records=[AttendanceRead.model_validate(r) for r in records],
    )


# ── Self-service ────────────────────────────────────────────────────
@router.post("/check-in", response_model=AttendanceRead)
async def check_in(
    body: CheckRequest | None = None,
    db: AsyncSession = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> Attendance:
    return await attendance_service.check_in(db, employee, body.remarks if body else None)


@router.post("/check-out", response_model=AttendanceRead)
async def check_out(
    body: CheckRequest | None = None,
    db: AsyncSession = Depends(get_db),
    employee: Employee = Depends(get_current_employee),
) -> Attendance:
    return await attendance_service.check_out(db, employee, body.remarks if body else None)


@router.get("/summary", response_model=AttendanceSummary)
async def my_summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> AttendanceSummary:
    employee = await get_employee_for_user(db, current_user.id)
    return await attendance_service.summarise(db, employee)


# ── Views ───────────────────────────────────────────────────────────
@router.get("/today", response_model=TodayAttendanceResponse)
async def today_attendance(
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_team_view),
) -> TodayAttendanceResponse:
    return await _day_view(db, local_today(await get_or_create_settings(db)))


@router.get("/date/{day}", response_model=TodayAttendanceResponse)
async def attendance_on_date(
    day: date,
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_team_view),
) -> TodayAttendanceResponse:
    return await _day_view(db, day)


@router.get("", response_model=list[AttendanceRead])
async def list_attendance(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    department_id: int | None = Query(None),
    employee_id: int | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000),
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_capability(Capability.VIEW_ALL_RECORDS)),
) -> list[Attendance]:
    stmt = _in_range(select(Attendance), start_date, end_date)
    if department_id is not None:
        stmt = stmt.join(Employee, Attendance.emp_id == Employee.id).where(
            Employee.dept_id == department_id
        )
    if employee_id is not None:
        stmt = stmt.where(Attendance.emp_id == employee_id)
    result = await db.execute(_ordered(stmt).offset(skip).limit(limit))
    return list(result.scalars().all())


@router.get("/employee/{employee_id}", response_model=list[AttendanceRead])
async def employee_attendance(
    employee_id: int,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[Attendance]:
    await ensure_self_or(db, current_user, employee_id)
    stmt = _in_range(select(Attendance).where(Attendance.emp_id == employee_id), start_date, end_date)
    result = await db.execute(_ordered(stmt))
    return list(result.scalars().all())


# ── Manual records ──────────────────────────────────────────────────
async def _build_record(db: AsyncSession, body: AttendanceCreate) -> Attendance:
    if body.check_in and body.check_out and body.check_out <= body.check_in:
        raise AppError("Check-out must be after check-in")
    record = Attendance(
        emp_id=body.emp_id,
        attendance_date=body.attendance_date,
        check_in=body.check_in,
        check_out=body.check_out,
        status=body.status.value,
        remarks=body.remarks,
        work_hours=0.0,
        is_leave=body.status == AttendanceStatus.LEAVE,
    )
    apply_worked_hours(record, await get_or_create_settings(db))
    return record


@router.post("", response_model=AttendanceRead, status_code=201)
async def create_attendance(
    body: AttendanceCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Attendance:
    if await db.get(Employee, body.emp_id) is None:
        raise NotFoundError("Employee not found")
    existing = await db.execute(
        select(Attendance.id).where(
            Attendance.emp_id == body.emp_id, Attendance.attendance_date == body.attendance_date
        )
    )
    if existing.first() is not None:
        raise AppError("Attendance record already exists for this employee and date")

    record = await _build_record(db, body)
    db.add(record)
    await db.commit()
    logger.info("Manual attendance %s for employee %s on %s", record.status, body.emp_id, body.attendance_date)
    return await attendance_service.reload_attendance(db, record.id)


@router.post("/bulk", response_model=BulkAttendanceResult, status_code=201)
async def bulk_create_attendance(
    body: BulkAttendanceCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> BulkAttendanceResult:
    emp_ids = {r.emp_id for r in body.records}
    known = set((await db.execute(select(Employee.id).where(Employee.id.in_(emp_ids)))).scalars().all())
    taken = {
        (emp_id, day)
        for emp_id, day in (
            await db.execute(
                select(Attendance.emp_id, Attendance.attendance_date).where(Attendance.emp_id.in_(emp_ids))
            )
        ).all()
    }

    created = 0
    skipped: list[dict] = []
    for item in body.records:
        key = (item.emp_id, item.attendance_date)
        if item.emp_id not in known:
            skipped.append({"emp_id": item.emp_id, "date": item.attendance_date.isoformat(), "reason": "Employee not found"})
            continue
        if key in taken:
            skipped.append({"emp_id": item.emp_id, "date": item.attendance_date.isoformat(), "reason": "Record already exists"})
            continue
        db.add(await _build_record(db, item))
        taken.add(key)
        created += 1
    await db.commit()

    logger.info("Bulk attendance: %d created, %d skipped", created, len(skipped))
    return BulkAttendanceResult(created=created, skipped=skipped)


@router.put("/{attendance_id}", response_model=AttendanceRead)
async def update_attendance(
    attendance_id: int,
    body: AttendanceUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Attendance:
    record = await attendance_service.reload_attendance(db, attendance_id)
    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if field == "status":
            if value is None:
                continue
            value = AttendanceStatus(value).value
            record.is_leave = value == AttendanceStatus.LEAVE.value
        setattr(record, field, value)
    if record.check_in and record.check_out and ensure_utc(record.check_out) <= ensure_utc(record.check_in):
        raise AppError("Check-out must be after check-in")
    if "check_in" in changes or "check_out" in changes:
        apply_worked_hours(record, await get_or_create_settings(db))
    await db.commit()
    logger.info("Attendance %s updated: %s", attendance_id, sorted(changes))
    return await attendance_service.reload_attendance(db, attendance_id)


@router.delete("/{attendance_id}", response_model=DeleteResponse)
async def delete_attendance(
    attendance_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DeleteResponse:
    record = await attendance_service.reload_attendance(db, attendance_id)
    await db.delete(record)
    await db.commit()
    logger.info("Attendance %s deleted", attendance_id)
    return DeleteResponse(success=True, message="Attendance record deleted successfully")
