"""
Report data builders.

Each report kind pulls its rows in one query, derives the display columns
(and, for the performance report, attendance %, average hours, punctuality
and a letter grade) and returns a ``ReportTable`` ready for any writer.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.exceptions import AppError, NotFoundError
from app.models.attendance import Attendance, AttendanceStatus
from app.models.attendance_settings import AttendanceSettings
from app.models.employee import Department, Employee
from app.models.leave import LeaveRequest, LeaveStatus
from app.services.report_renderers import WRITERS, ReportTable
from app.services.work_schedule import (ensure_utc, get_or_create_settings,
                                        is_on_time, parse_offset)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportDefinition:
    kind: str
    title: str
    fields: list[str]
    headers: list[str]
    pdf_headers: list[str] | None = None
    needs_dates: bool = True


REPORTS: dict[str, ReportDefinition] = {
    "attendance": ReportDefinition(
        kind="attendance",
        title="Attendance Report",
        fields=["date", "employeeName", "employeeCode", "email", "checkIn", "checkOut", "status", "workHours"],
        headers=["Date", "Employee Name", "Employee Code", "Email", "Check In", "Check Out", "Status", "Work Hours"],
        pdf_headers=["Date", "Employee", "Code", "Email", "Check In", "Check Out", "Status", "Hours"],
    ),
    "employee": ReportDefinition(
        kind="employee",
        title="Employee Report",
        fields=["employeeCode", "name", "email", "department", "position", "joinDate", "status"],
        headers=["Employee Code", "Name", "Email", "Department", "Position", "Join Date", "Status"],
        needs_dates=False,
    ),
    "leave": ReportDefinition(
        kind="leave",
        title="Leave Report",
        fields=[
            "employeeName", "employeeCode", "email", "leaveType", "startDate",
            "endDate", "duration", "status", "reason", "appliedDate",
        ],
        headers=[
            "Employee Name", "Employee Code", "Email", "Leave Type", "Start Date",
            "End Date", "Duration (Days)", "Status", "Reason", "Applied Date",
        ],
        pdf_headers=[
            "Employee", "Code", "Email", "Type", "Start", "End",
            "Duration", "Status", "Reason", "Applied",
        ],
    ),
    "performance": ReportDefinition(
        kind="performance",
        title="Performance Report",
        fields=[
            "employeeName", "employeeCode", "email", "department", "position",
            "daysPresent", "daysAbsent", "daysOnLeave", "attendancePercentage",
            "avgWorkHours", "onTimeArrival", "performanceScore",
        ],
        headers=[
            "Employee Name", "Employee Code", "Email", "Department", "Position",
            "Days Present", "Days Absent", "Days On Leave", "Attendance %",
            "Avg Work Hours", "On Time %", "Performance Score",
        ],
        pdf_headers=[
            "Employee", "Code", "Email", "Department", "Position", "Present",
            "Absent", "Leave", "Attend. %", "Avg Hrs", "On Time", "Score",
        ],
    ),
}


@dataclass
class ReportFilters:
    start_date: date | None = None
    end_date: date | None = None
    department_id: int | None = None


# ── Metrics ─────────────────────────────────────────────────────────
def performance_grade(attendance_pct: float, on_time_pct: float) -> str:
    """70% attendance, 30% punctuality, mapped to A-F."""
    score = attendance_pct * 0.7 + on_time_pct * 0.3
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def overlap_days(start: date, end: date, range_start: date, range_end: date) -> int:
    first, last = max(start, range_start), min(end, range_end)
    return (last - first).days + 1 if first <= last else 0


def _fmt_date(value: date | None) -> str:
    return value.strftime("%b %d, %Y") if value else "N/A"


def _fmt_time(value: datetime | None, att_settings: AttendanceSettings) -> str:
    if value is None:
        return "N/A"
    local = ensure_utc(value).astimezone(parse_offset(att_settings.timezone_offset))
    return local.strftime("%I:%M %p")


def _truncate(text: str | None, limit: int = 100) -> str:
    if not text:
        return "No reason provided"
    return text if len(text) <= limit else text[: limit - 3] + "..."


# ── Builders ────────────────────────────────────────────────────────
def _employee_scope(filters: ReportFilters):
    stmt = select(Employee).order_by(Employee.employee_code)
    if filters.department_id is not None:
        stmt = stmt.where(Employee.dept_id == filters.department_id)
    return stmt


async def _attendance_rows(db: AsyncSession, filters: ReportFilters) -> list[dict]:
    att_settings = await get_or_create_settings(db)
    stmt = (
        select(Attendance)
        .join(Employee, Attendance.emp_id == Employee.id)
        .where(
            Attendance.attendance_date >= filters.start_date,
            Attendance.attendance_date <= filters.end_date,
        )
        .order_by(Attendance.attendance_date, Employee.employee_code)
    )
    if filters.department_id is not None:
        stmt = stmt.where(Employee.dept_id == filters.department_id)
    records = (await db.execute(stmt)).scalars().all()
    return [
        {
            "date": r.attendance_date.isoformat(),
            "employeeName": r.employee_name or "Unknown",
            "employeeCode": r.employee_code or "N/A",
            "email": (r.employee.email if r.employee else None) or "N/A",
            "checkIn": _fmt_time(r.check_in, att_settings),
            "checkOut": _fmt_time(r.check_out, att_settings),
            "status": r.status,
            "workHours": f"{r.work_hours or 0:.2f}",
        }
        for r in records
    ]


async def _employee_rows(db: AsyncSession, filters: ReportFilters) -> list[dict]:
    employees = (await db.execute(_employee_scope(filters))).scalars().all()
    return [
        {
            "employeeCode": e.employee_code,
            "name": e.full_name,
            "email": e.email or "N/A",
            "department": e.department_name or "No Department",
            "position": e.designation or "N/A",
            "joinDate": e.hire_date.isoformat() if e.hire_date else "N/A",
            "status": "Active" if e.user is not None and e.user.is_active else "Inactive",
        }
        for e in employees
    ]


async def _leave_rows(db: AsyncSession, filters: ReportFilters) -> list[dict]:
    stmt = (
        select(LeaveRequest)
        .join(Employee, LeaveRequest.emp_id == Employee.id)
        .where(
            LeaveRequest.start_date <= filters.end_date,
            LeaveRequest.end_date >= filters.start_date,
        )
        .order_by(LeaveRequest.start_date, Employee.employee_code)
    )
    if filters.department_id is not None:
        stmt = stmt.where(Employee.dept_id == filters.department_id)
    leaves = (await db.execute(stmt)).scalars().all()
    return [
        {
            "employeeName": lr.employee_name or "Unknown",
            "employeeCode": lr.employee_code or "N/A",
            "email": (lr.employee.email if lr.employee else None) or "N/A",
            "leaveType": lr.leave_name or "Unknown",
            "startDate": _fmt_date(lr.start_date),
            "endDate": _fmt_date(lr.end_date),
            "duration": f"{lr.duration:g} day{'' if lr.duration == 1 else 's'}",
            "status": lr.status.capitalize(),
            "reason": _truncate(lr.reason),
            "appliedDate": _fmt_date(lr.applied_date.date() if lr.applied_date else None),
        }
        for lr in leaves
    ]


async def _performance_rows(db: AsyncSession, filters: ReportFilters) -> list[dict]:
    att_settings = await get_or_create_settings(db)
    start, end = filters.start_date, filters.end_date
    total_days = (end - start).days + 1
    employees = (await db.execute(_employee_scope(filters))).scalars().all()
    emp_ids = [e.id for e in employees]
    if not emp_ids:
        return []

    records = (
        await db.execute(
            select(Attendance).where(
                Attendance.emp_id.in_(emp_ids),
                Attendance.attendance_date >= start,
                Attendance.attendance_date <= end,
            )
        )
    ).scalars().all()
    by_emp: dict[int, list[Attendance]] = defaultdict(list)
    for r in records:
        by_emp[r.emp_id].append(r)

    leaves = (
        await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.emp_id.in_(emp_ids),
                LeaveRequest.status == LeaveStatus.APPROVED.value,
                LeaveRequest.start_date <= end,
                LeaveRequest.end_date >= start,
            )
        )
    ).scalars().all()
    leave_days: dict[int, float] = defaultdict(float)
    for lr in leaves:
        days = overlap_days(lr.start_date, lr.end_date, start, end)
        leave_days[lr.emp_id] += 0.5 if lr.is_half_day and days else float(days)

    rows: list[dict] = []
    for emp in employees:
        emp_records = by_emp.get(emp.id, [])
        present = [r for r in emp_records if r.status == AttendanceStatus.PRESENT.value]
        absent = sum(1 for r in emp_records if r.status == AttendanceStatus.ABSENT.value)
        on_leave = leave_days.get(emp.id, 0.0)
        total_hours = sum(r.work_hours or 0 for r in emp_records)
        avg_hours = total_hours / len(present) if present else 0.0
        attendance_pct = (len(present) + on_leave) / total_days * 100 if total_days > 0 else 0.0
        on_time = sum(1 for r in present if r.check_in is not None and is_on_time(r.check_in, att_settings))
        on_time_pct = on_time / len(present) * 100 if present else 0.0
        rows.append(
            {
                "employeeName": emp.full_name,
                "employeeCode": emp.employee_code,
                "email": emp.email or "N/A",
                "department": emp.department_name or "No Department",
                "position": emp.designation or "N/A",
                "daysPresent": len(present),
                "daysAbsent": absent,
                "daysOnLeave": on_leave,
                "attendancePercentage": f"{attendance_pct:.2f}%",
                "avgWorkHours": f"{avg_hours:.2f}",
                "onTimeArrival": f"{on_time_pct:.2f}%",
                "performanceScore": performance_grade(attendance_pct, on_time_pct),
            }
        )
    return rows


_BUILDERS: dict[str, Callable[[AsyncSession, ReportFilters], Awaitable[list[dict]]]] = {
    "attendance": _attendance_rows,
    "employee": _employee_rows,
    "leave": _leave_rows,
    "performance": _performance_rows,
}


def get_definition(kind: str) -> ReportDefinition:
    definition = REPORTS.get(kind)
    if definition is None:
        raise NotFoundError(f"Unknown report type '{kind}'")
    return definition


def validate_filters(definition: ReportDefinition, filters: ReportFilters) -> None:
    if not definition.needs_dates:
        return
    if filters.start_date is None or filters.end_date is None:
        raise AppError("Start date and end date are required")
    if filters.start_date > filters.end_date:
        raise AppError("Start date must be before or equal to end date")


async def build_report(db: AsyncSession, kind: str, filters: ReportFilters) -> ReportTable:
    definition = get_definition(kind)
    validate_filters(definition, filters)

    metadata: dict[str, str] = {}
    if filters.start_date and filters.end_date and definition.needs_dates:
        metadata["Period"] = f"{filters.start_date.isoformat()} to {filters.end_date.isoformat()}"
    if filters.department_id is not None:
        department = await db.get(Department, filters.department_id)
        if department is None:
            raise NotFoundError("Department not found")
        metadata["Department"] = department.dept_name
    metadata["Generated"] = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    rows = await _BUILDERS[kind](db, filters)
    return ReportTable(
        title=definition.title,
        fields=list(definition.fields),
        headers=list(definition.headers),
        pdf_headers=list(definition.pdf_headers) if definition.pdf_headers else None,
        rows=rows,
        metadata=metadata,
    )


# ── Files ───────────────────────────────────────────────────────────
@dataclass
class RenderedReport:
    path: Path
    filename: str
    media_type: str


def normalise_format(fmt: str | None) -> str:
    fmt = (fmt or "pdf").lower()
    return fmt if fmt in WRITERS else "pdf"


async def render_report(table: ReportTable, fmt: str) -> RenderedReport:
    """Write *table* into the reports temp dir; the caller streams then deletes it."""
    writer, ext, media_type = WRITERS[normalise_format(fmt)]
    out_dir = Path(settings.REPORTS_TMP_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = table.title.replace(" ", "_")
    path = out_dir / f"{stem}_{uuid.uuid4().hex}.{ext}"
    await run_in_threadpool(writer, table, path)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    logger.info("Rendered %s (%d rows) to %s", table.title, len(table.rows), path.name)
    return RenderedReport(path=path, filename=f"{stem}_{stamp}.{ext}", media_type=media_type)


def stream_and_delete(path: Path, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    """Yield the file in chunks and remove it once fully sent (or abandoned)."""
    try:
        with path.open("rb") as fh:
            while chunk := fh.read(chunk_size):
                yield chunk
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
