"""
Leave lifecycle coordinator.

Keeps LeaveRequest status, LeaveBalance counters and Attendance day rows
consistent.  Every public transition (create, update, decide, cancel) is one
transaction: the rows it mutates are read with ``SELECT ... FOR UPDATE``,
all writes are flushed together and committed once, and any failure rolls
the whole transition back.

Balance counters never go below zero.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, ForbiddenError, NotFoundError
from app.core.roles import Capability, has_capability
from app.models.attendance import Attendance, AttendanceStatus
from app.models.employee import Employee
from app.models.leave import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType
from app.models.user import User
from app.schemas.leave import (LeaveBalanceRead, LeaveRequestCreate,
                               LeaveRequestUpdate)
from app.services.notification_service import notify_users
from app.services.work_schedule import iter_days

logger = logging.getLogger(__name__)

MIN_DURATION = 0.5
MAX_DURATION = 30.0
ACTIVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


@asynccontextmanager
async def _transition(db: AsyncSession, action: str) -> AsyncIterator[None]:
    """Commit everything done inside the block at once, or nothing at all."""
    try:
        yield
        await db.commit()
    except Exception:
        await db.rollback()
        logger.warning("Leave %s rolled back", action)
        raise


def _release(counter: float | None, amount: float) -> float:
    return max(0.0, (counter or 0.0) - amount)


def compute_duration(start: date, end: date, is_half_day: bool = False) -> float:
    """Inclusive calendar-day count, or 0.5 for a half-day request."""
    if is_half_day:
        return 0.5
    return float((end - start).days + 1)


# ── Lookups ─────────────────────────────────────────────────────────
async def get_leave_request(db: AsyncSession, leave_id: int, *, lock: bool = False) -> LeaveRequest:
    stmt = (
        select(LeaveRequest)
        .where(LeaveRequest.id == leave_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update(of=LeaveRequest)
    result = await db.execute(stmt)
    leave = result.scalar_one_or_none()
    if leave is None:
        raise NotFoundError("Leave request not found")
    return leave


async def get_leave_type(db: AsyncSession, leave_type_id: int) -> LeaveType:
    leave_type = await db.get(LeaveType, leave_type_id)
    if leave_type is None:
        raise NotFoundError("Leave type not found")
    return leave_type


async def get_or_create_balance(
    db: AsyncSession,
    emp_id: int,
    leave_type: LeaveType,
    year: int,
) -> LeaveBalance:
    """Locked balance row for (employee, type, year), seeded from the type's quota."""
    result = await db.execute(
        select(LeaveBalance)
        .where(
            LeaveBalance.emp_id == emp_id,
            LeaveBalance.leave_type_id == leave_type.id,
            LeaveBalance.year == year,
        )
        .with_for_update(of=LeaveBalance)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        balance = LeaveBalance(
            emp_id=emp_id,
            leave_type_id=leave_type.id,
            year=year,
            allocated_leaves=leave_type.default_annual_quota or 0,
            used_leaves=0,
            pending_leaves=0,
            carried_forward=0,
        )
        db.add(balance)
        await db.flush()
        logger.info(
            "Initialised %s balance for employee %s (%s): %.1f days",
            leave_type.leave_code, emp_id, year, balance.allocated_leaves,
        )
    return balance


async def _ensure_no_overlap(
    db: AsyncSession,
    emp_id: int,
    start: date,
    end: date,
    exclude_id: int | None = None,
) -> None:
    stmt = select(LeaveRequest.id).where(
        LeaveRequest.emp_id == emp_id,
        LeaveRequest.status.in_(ACTIVE_STATUSES),
        LeaveRequest.start_date <= end,
        LeaveRequest.end_date >= start,
    )
    if exclude_id is not None:
        stmt = stmt.where(LeaveRequest.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    if result.scalar_one_or_none() is not None:
        raise AppError("Leave request overlaps with an existing request")


def _validate_duration(duration: float, leave_type: LeaveType) -> None:
    if duration < MIN_DURATION:
        raise AppError(f"Leave duration must be at least {MIN_DURATION} days")
    if duration > MAX_DURATION:
        raise AppError(f"Leave duration cannot exceed {MAX_DURATION:g} days")
    if leave_type.max_consecutive_days and duration > leave_type.max_consecutive_days:
        raise AppError(
            f"{leave_type.leave_name} allows at most "
            f"{leave_type.max_consecutive_days} consecutive days"
        )


def _ensure_available(balance: LeaveBalance, requested: float) -> None:
    if balance.available < requested:
        raise AppError(
            f"Insufficient leave balance. Available: {balance.available:g}, "
            f"Requested: {requested:g}"
        )


def _can_manage(actor: User) -> bool:
    return has_capability(actor.roles, Capability.MANAGE_ORGANISATION)


async def _actor_employee_id(db: AsyncSession, actor: User) -> int | None:
    result = await db.execute(select(Employee.id).where(Employee.user_id == actor.id))
    return result.scalar_one_or_none()


async def _ensure_owner_or_manager(db: AsyncSession, leave: LeaveRequest, actor: User) -> None:
    if _can_manage(actor):
        return
    if await _actor_employee_id(db, actor) != leave.emp_id:
        raise ForbiddenError("You are not authorized to modify this leave request")


# ── Attendance side effects ─────────────────────────────────────────
async def _stamp_leave_days(db: AsyncSession, leave: LeaveRequest) -> int:
    """Upsert one LEAVE attendance row per calendar day of the request."""
    result = await db.execute(
        select(Attendance)
        .where(
            Attendance.emp_id == leave.emp_id,
            Attendance.attendance_date >= leave.start_date,
            Attendance.attendance_date <= leave.end_date,
        )
        .with_for_update(of=Attendance)
    )
    existing = {row.attendance_date: row for row in result.scalars().all()}
    for day in iter_days(leave.start_date, leave.end_date):
        row = existing.get(day)
        if row is None:
            row = Attendance(emp_id=leave.emp_id, attendance_date=day, work_hours=0.0)
            db.add(row)
        row.status = AttendanceStatus.LEAVE.value
        row.is_leave = True
        row.leave_request_id = leave.id
    return (leave.end_date - leave.start_date).days + 1


async def _revert_leave_days(db: AsyncSession, leave: LeaveRequest) -> int:
    """Turn every attendance row linked to *leave* back into a plain ABSENT day."""
    result = await db.execute(
        select(Attendance)
        .where(Attendance.leave_request_id == leave.id, Attendance.emp_id == leave.emp_id)
        .with_for_update(of=Attendance)
    )
    rows = list(result.scalars().all())
    for row in rows:
        row.status = AttendanceStatus.ABSENT.value
        row.is_leave = False
        row.leave_request_id = None
    return len(rows)


def _approve(leave: LeaveRequest, balance: LeaveBalance, approver_id: int | None) -> None:
    balance.pending_leaves = _release(balance.pending_leaves, leave.duration)
    balance.used_leaves = (balance.used_leaves or 0.0) + leave.duration
    leave.status = LeaveStatus.APPROVED.value
    leave.approved_by = approver_id
    leave.last_modified = datetime.now(timezone.utc)


# ── Transitions ─────────────────────────────────────────────────────
async def create_leave_request(
    db: AsyncSession,
    employee: Employee,
    payload: LeaveRequestCreate,
) -> LeaveRequest:
    """Reserve balance and file a PENDING request (auto-approved when the type needs no approval)."""
    async with _transition(db, "create"):
        leave_type = await get_leave_type(db, payload.leave_type_id)

        duration = compute_duration(payload.start_date, payload.end_date, payload.is_half_day)
        if payload.duration is not None and payload.duration != duration:
            raise AppError(
                f"Duration {payload.duration:g} does not match the requested dates ({duration:g} days)"
            )
        _validate_duration(duration, leave_type)
        await _ensure_no_overlap(db, employee.id, payload.start_date, payload.end_date)

        balance = await get_or_create_balance(db, employee.id, leave_type, payload.start_date.year)
        _ensure_available(balance, duration)
        balance.pending_leaves = (balance.pending_leaves or 0.0) + duration

        leave = LeaveRequest(
            emp_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            duration=duration,
            reason=payload.reason.strip(),
            is_half_day=payload.is_half_day,
            contact_during_leave=payload.contact_during_leave,
            status=LeaveStatus.PENDING.value,
        )
        db.add(leave)
        await db.flush()

        if not leave_type.requires_approval:
            _approve(leave, balance, None)
            await _stamp_leave_days(db, leave)

    logger.info(
        "Leave request %s filed for employee %s: %s %s..%s (%.1f days, %s)",
        leave.id, employee.id, leave_type.leave_code,
        leave.start_date, leave.end_date, duration, leave.status,
    )
    return await get_leave_request(db, leave.id)


async def update_leave_request(
    db: AsyncSession,
    leave_id: int,
    actor: User,
    payload: LeaveRequestUpdate,
) -> LeaveRequest:
    """Edit a PENDING request; the pending reservation follows the new duration."""
    async with _transition(db, "update"):
        leave = await get_leave_request(db, leave_id, lock=True)
        await _ensure_owner_or_manager(db, leave, actor)
        if leave.status != LeaveStatus.PENDING.value:
            raise AppError("Only pending leave requests can be updated")

        changes = payload.model_dump(exclude_unset=True)
        start = changes.get("start_date") or leave.start_date
        end = changes.get("end_date") or leave.end_date
        # an explicit null keeps the stored flag
        is_half_day = leave.is_half_day if changes.get("is_half_day") is None else changes["is_half_day"]
        if start > end:
            raise AppError("Start date must be before or equal to end date")
        if is_half_day and start != end:
            raise AppError("A half-day leave must start and end on the same day")

        new_duration = compute_duration(start, end, is_half_day)
        leave.is_half_day = is_half_day
        if (start, end, new_duration) != (leave.start_date, leave.end_date, leave.duration):
            if start.year != leave.start_date.year:
                raise AppError("A leave request cannot be moved into another year; cancel and re-apply")
            leave_type = await get_leave_type(db, leave.leave_type_id)
            _validate_duration(new_duration, leave_type)
            await _ensure_no_overlap(db, leave.emp_id, start, end, exclude_id=leave.id)

            balance = await get_or_create_balance(db, leave.emp_id, leave_type, start.year)
            delta = new_duration - leave.duration
            if delta > 0:
                _ensure_available(balance, delta)
            balance.pending_leaves = max(0.0, (balance.pending_leaves or 0.0) + delta)
            leave.start_date, leave.end_date = start, end
            leave.duration = new_duration

        if "reason" in changes and changes["reason"] is not None:
            leave.reason = changes["reason"].strip()
        if "contact_during_leave" in changes:
            leave.contact_during_leave = changes["contact_during_leave"]
        leave.last_modified = datetime.now(timezone.utc)

    logger.info("Leave request %s updated by user %s", leave_id, actor.id)
    return await get_leave_request(db, leave_id)


async def decide_leave_request(
    db: AsyncSession,
    leave_id: int,
    approver: User,
    status: LeaveStatus,
    rejection_reason: str | None = None,
) -> LeaveRequest:
    """Approve or reject a PENDING request."""
    if status not in (LeaveStatus.APPROVED, LeaveStatus.REJECTED):
        raise AppError("Status must be APPROVED or REJECTED")
    if status == LeaveStatus.REJECTED and not (rejection_reason and rejection_reason.strip()):
        raise AppError("A rejection reason is required")

    async with _transition(db, status.value.lower()):
        leave = await get_leave_request(db, leave_id, lock=True)
        if leave.status != LeaveStatus.PENDING.value:
            raise AppError("Leave request has already been processed")
        if not _can_manage(approver) and await _actor_employee_id(db, approver) == leave.emp_id:
            raise ForbiddenError("You cannot approve or reject your own leave request")

        leave_type = await get_leave_type(db, leave.leave_type_id)
        balance = await get_or_create_balance(db, leave.emp_id, leave_type, leave.start_date.year)

        if status == LeaveStatus.APPROVED:
            _approve(leave, balance, approver.id)
            days = await _stamp_leave_days(db, leave)
            title = "Leave request approved"
            body = (
                f"Your {leave_type.leave_name} from {leave.start_date} to {leave.end_date} "
                f"has been approved."
            )
        else:
            balance.pending_leaves = _release(balance.pending_leaves, leave.duration)
            leave.status = LeaveStatus.REJECTED.value
            leave.approved_by = approver.id
            leave.rejection_reason = rejection_reason.strip() if rejection_reason else None
            leave.last_modified = datetime.now(timezone.utc)
            days = 0
            title = "Leave request rejected"
            body = (
                f"Your {leave_type.leave_name} from {leave.start_date} to {leave.end_date} "
                f"was rejected: {leave.rejection_reason}"
            )

        employee = await db.get(Employee, leave.emp_id)
        if employee is not None:
            await notify_users(db, approver.id, [employee.user_id], title, body[:500])

    logger.info(
        "Leave request %s %s by user %s (%d attendance days stamped)",
        leave_id, status.value, approver.id, days,
    )
    return await get_leave_request(db, leave_id)


async def cancel_leave_request(db: AsyncSession, leave_id: int, actor: User) -> LeaveRequest:
    """Cancel a PENDING or APPROVED request and release what it held."""
    async with _transition(db, "cancel"):
        leave = await get_leave_request(db, leave_id, lock=True)
        await _ensure_owner_or_manager(db, leave, actor)
        if leave.status not in ACTIVE_STATUSES:
            raise AppError(f"Cannot cancel a leave request with status {leave.status}")

        leave_type = await get_leave_type(db, leave.leave_type_id)
        balance = await get_or_create_balance(db, leave.emp_id, leave_type, leave.start_date.year)

        reverted = 0
        if leave.status == LeaveStatus.PENDING.value:
            balance.pending_leaves = _release(balance.pending_leaves, leave.duration)
        else:
            balance.used_leaves = _release(balance.used_leaves, leave.duration)
            reverted = await _revert_leave_days(db, leave)

        leave.status = LeaveStatus.CANCELLED.value
        leave.last_modified = datetime.now(timezone.utc)

    logger.info(
        "Leave request %s cancelled by user %s (%d attendance rows reverted)",
        leave_id, actor.id, reverted,
    )
    return await get_leave_request(db, leave_id)


# ── Balances ────────────────────────────────────────────────────────
async def list_balances(db: AsyncSession, emp_id: int, year: int) -> list[LeaveBalanceRead]:
    """One row per leave type; types without a stored balance get a virtual default."""
    types = (await db.execute(select(LeaveType).order_by(LeaveType.leave_code))).scalars().all()
    stored = (
        await db.execute(
            select(LeaveBalance).where(LeaveBalance.emp_id == emp_id, LeaveBalance.year == year)
        )
    ).scalars().all()
    by_type = {b.leave_type_id: b for b in stored}

    rows: list[LeaveBalanceRead] = []
    for leave_type in types:
        balance = by_type.get(leave_type.id)
        if balance is None:
            allocated = float(leave_type.default_annual_quota or 0)
            rows.append(
                LeaveBalanceRead(
                    id=None, emp_id=emp_id, leave_type_id=leave_type.id,
                    leave_code=leave_type.leave_code, leave_name=leave_type.leave_name,
                    year=year, allocated_leaves=allocated, used_leaves=0,
                    pending_leaves=0, carried_forward=0, available=allocated,
                )
            )
            continue
        rows.append(
            LeaveBalanceRead(
                id=balance.id, emp_id=emp_id, leave_type_id=leave_type.id,
                leave_code=leave_type.leave_code, leave_name=leave_type.leave_name,
                year=year, allocated_leaves=balance.allocated_leaves,
                used_leaves=balance.used_leaves, pending_leaves=balance.pending_leaves,
                carried_forward=balance.carried_forward, available=balance.available,
            )
        )
    return rows


async def set_balance(
    db: AsyncSession,
    emp_id: int,
    leave_type_id: int,
    year: int,
    allocated: float | None,
    carried_forward: float | None,
) -> LeaveBalance:
    """Admin adjustment of allocation / carry-forward for one balance row."""
    async with _transition(db, "balance update"):
        leave_type = await get_leave_type(db, leave_type_id)
        balance = await get_or_create_balance(db, emp_id, leave_type, year)
        if allocated is not None:
            balance.allocated_leaves = allocated
        if carried_forward is not None:
            balance.carried_forward = carried_forward
        committed = (balance.used_leaves or 0) + (balance.pending_leaves or 0)
        if (balance.allocated_leaves or 0) + (balance.carried_forward or 0) < committed:
            raise AppError(
                f"Allocation cannot be lower than days already used or pending ({committed:g})"
            )
    logger.info(
        "Balance %s/%s/%s set to allocated=%s carried_forward=%s",
        emp_id, leave_type.leave_code, year, balance.allocated_leaves, balance.carried_forward,
    )
    return balance
