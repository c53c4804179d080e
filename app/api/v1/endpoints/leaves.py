"""
Leave endpoints: types, balances and the request lifecycle.

All state changes go through ``app.services.leave_service``; the handlers
here only resolve the caller, check capabilities and shape responses.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (FORBIDDEN_MESSAGE, ensure_self_or,
                             get_current_active_user, get_db,
                             get_employee_for_user, require_capability)
from app.core.exceptions import AppError, ForbiddenError, NotFoundError
from app.core.roles import Capability, has_capability
from app.models.employee import Employee
from app.models.leave import LeaveRequest, LeaveStatus, LeaveType
from app.models.user import User
from app.schemas.leave import (LeaveBalanceRead, LeaveBalanceUpdate,
                               LeaveDecision, LeaveRequestCreate,
                               LeaveRequestRead, LeaveRequestUpdate,
                               LeaveTypeCreate, LeaveTypeRead,
                               LeaveTypeUpdate)
from app.services import leave_service
from app.services.work_schedule import get_or_create_settings, local_today

router = APIRouter(prefix="/leaves", tags=["leaves"])
logger = logging.getLogger(__name__)

require_org_admin = require_capability(Capability.MANAGE_ORGANISATION)


async def _current_year(db: AsyncSession) -> int:
    return local_today(await get_or_create_settings(db)).year


# ── Leave types ─────────────────────────────────────────────────────
@router.get("/types", response_model=list[LeaveTypeRead])
async def list_leave_types(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> list[LeaveType]:
    result = await db.execute(select(LeaveType).order_by(LeaveType.leave_code))
    return list(result.scalars().all())


@router.get("/types/{type_id}", response_model=LeaveTypeRead)
async def get_leave_type(
    type_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> LeaveType:
    return await leave_service.get_leave_type(db, type_id)


@router.post("/types", response_model=LeaveTypeRead, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> LeaveType:
    taken = await db.execute(select(LeaveType.id).where(LeaveType.leave_code == body.leave_code))
    if taken.first() is not None:
        raise AppError("Leave type with this code already exists")
    leave_type = LeaveType(**body.model_dump())
    db.add(leave_type)
    await db.commit()
    await db.refresh(leave_type)
    logger.info("Leave type %s created", leave_type.leave_code)
    return leave_type


@router.put("/types/{type_id}", response_model=LeaveTypeRead)
async def update_leave_type(
    type_id: int,
    body: LeaveTypeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> LeaveType:
    leave_type = await leave_service.get_leave_type(db, type_id)
    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(leave_type, field, value)
    await db.commit()
    await db.refresh(leave_type)
    return leave_type


# ── Balances ────────────────────────────────────────────────────────
@router.get("/balance/{employee_id}", response_model=list[LeaveBalanceRead])
async def get_balances(
    employee_id: int,
    year: int | None = Query(None, ge=1900, le=2999),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[LeaveBalanceRead]:
    await ensure_self_or(db, current_user, employee_id)
    if await db.get(Employee, employee_id) is None:
        raise NotFoundError("Employee not found")
    return await leave_service.list_balances(db, employee_id, year or await _current_year(db))


@router.put("/balance/{employee_id}", response_model=list[LeaveBalanceRead])
async def set_balance(
    employee_id: int,
    body: LeaveBalanceUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> list[LeaveBalanceRead]:
    if await db.get(Employee, employee_id) is None:
        raise NotFoundError("Employee not found")
    year = body.year or await _current_year(db)
    await leave_service.set_balance(
        db, employee_id, body.leave_type_id, year, body.allocated_leaves, body.carried_forward
    )
    return await leave_service.list_balances(db, employee_id, year)


# ── Requests ────────────────────────────────────────────────────────
@router.get("", response_model=list[LeaveRequestRead])
async def list_leave_requests(
    status: LeaveStatus | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    department_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_capability(Capability.VIEW_ALL_RECORDS)),
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status.value)
    if start_date is not None:
        stmt = stmt.where(LeaveRequest.end_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(LeaveRequest.start_date <= end_date)
    if department_id is not None:
        stmt = stmt.join(Employee, LeaveRequest.emp_id == Employee.id).where(
            Employee.dept_id == department_id
        )
    result = await db.execute(stmt.order_by(LeaveRequest.applied_date.desc()))
    return list(result.scalars().all())


@router.post("", response_model=LeaveRequestRead, status_code=201)
async def apply_for_leave(
    body: LeaveRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> LeaveRequest:
    own = await get_employee_for_user(db, current_user.id)
    if body.emp_id is not None and (own is None or body.emp_id != own.id):
        if not has_capability(current_user.roles, Capability.MANAGE_ORGANISATION):
            raise ForbiddenError(FORBIDDEN_MESSAGE)
        employee = await db.get(Employee, body.emp_id)
        if employee is None:
            raise NotFoundError("Employee not found")
    elif own is None:
        raise NotFoundError("Employee profile not found for this user")
    else:
        employee = own
    return await leave_service.create_leave_request(db, employee, body)


@router.get("/employee/{employee_id}", response_model=list[LeaveRequestRead])
async def employee_leave_requests(
    employee_id: int,
    status: LeaveStatus | None = Query(None),
    year: int | None = Query(None, ge=1900, le=2999),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[LeaveRequest]:
    await ensure_self_or(db, current_user, employee_id)
    stmt = select(LeaveRequest).where(LeaveRequest.emp_id == employee_id)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status.value)
    if year is not None:
        stmt = stmt.where(
            LeaveRequest.start_date >= date(year, 1, 1), LeaveRequest.start_date <= date(year, 12, 31)
        )
    result = await db.execute(stmt.order_by(LeaveRequest.start_date.desc()))
    return list(result.scalars().all())


@router.get("/{leave_id}", response_model=LeaveRequestRead)
async def get_leave_request(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> LeaveRequest:
    leave = await leave_service.get_leave_request(db, leave_id)
    await ensure_self_or(db, current_user, leave.emp_id)
    return leave


@router.put("/{leave_id}", response_model=LeaveRequestRead)
async def update_leave_request(
    leave_id: int,
    body: LeaveRequestUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> LeaveRequest:
    return await leave_service.update_leave_request(db, leave_id, current_user, body)


@router.put("/{leave_id}/cancel", response_model=LeaveRequestRead)
async def cancel_leave_request(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> LeaveRequest:
    return await leave_service.cancel_leave_request(db, leave_id, current_user)


@router.put("/{leave_id}/status", response_model=LeaveRequestRead)
async def decide_leave_request(
    leave_id: int,
    body: LeaveDecision,
    db: AsyncSession = Depends(get_db),
    approver: User = Depends(require_capability(Capability.DECIDE_LEAVE)),
) -> LeaveRequest:
    return await leave_service.decide_leave_request(
        db, leave_id, approver, LeaveStatus(body.status), body.rejection_reason
    )
