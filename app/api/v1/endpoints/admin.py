"""
Admin endpoints: dashboard stats, user & role management, and the
leave approval shortcuts used by the admin console.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_capability
from app.core.exceptions import AppError, NotFoundError
from app.core.roles import Capability
from app.models.attendance import Attendance, AttendanceStatus
from app.models.employee import Department, Employee
from app.models.leave import LeaveRequest, LeaveStatus
from app.models.user import User, UserRole
from app.schemas.attendance import DeleteResponse
from app.schemas.leave import LeaveDenial, LeaveRequestRead
from app.schemas.user import AdminUserUpdate, RoleAssign, UserRead
from app.services import leave_service
from app.services.organisation_service import assign_role, get_role, load_user
from app.services.work_schedule import get_or_create_settings, local_today

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

require_user_admin = require_capability(Capability.MANAGE_USERS)


class DepartmentStat(BaseModel):
    department_id: int
    dept_name: str
    employee_count: int


class TodayStats(BaseModel):
    total: int
    present: int
    absent: int
    on_leave: int


class AdminStats(BaseModel):
    users: int
    employees: int
    departments: int
    today_attendance: TodayStats
    pending_leave_requests: int
    department_stats: list[DepartmentStat]


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@router.get("/stats", response_model=AdminStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> AdminStats:
    today = local_today(await get_or_create_settings(db))
    by_status = dict(
        (
            await db.execute(
                select(Attendance.status, func.count(Attendance.id))
                .where(Attendance.attendance_date == today)
                .group_by(Attendance.status)
            )
        ).all()
    )
    pending = (
        await db.execute(
            select(func.count(LeaveRequest.id)).where(LeaveRequest.status == LeaveStatus.PENDING.value)
        )
    ).scalar_one()
    dept_rows = await db.execute(
        select(Department.id, Department.dept_name, func.count(Employee.id))
        .outerjoin(Employee, Employee.dept_id == Department.id)
        .group_by(Department.id, Department.dept_name)
        .order_by(Department.dept_name)
    )

    return AdminStats(
        users=await _count(db, User),
        employees=await _count(db, Employee),
        departments=await _count(db, Department),
        today_attendance=TodayStats(
            total=sum(by_status.values()),
            present=by_status.get(AttendanceStatus.PRESENT.value, 0)
            + by_status.get(AttendanceStatus.HALF_DAY.value, 0),
            absent=by_status.get(AttendanceStatus.ABSENT.value, 0),
            on_leave=by_status.get(AttendanceStatus.LEAVE.value, 0),
        ),
        pending_leave_requests=pending,
        department_stats=[
            DepartmentStat(department_id=i, dept_name=n, employee_count=c)
            for i, n, c in dept_rows.all()
        ],
    )


# ── Users ───────────────────────────────────────────────────────────
@router.get("/users", response_model=list[UserRead])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> list[User]:
    result = await db.execute(select(User).order_by(User.id).offset(skip).limit(limit))
    return list(result.scalars().all())


@router.get("/users/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> User:
    return await load_user(db, user_id)


@router.put("/users/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    body: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> User:
    user = await load_user(db, user_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != user.email:
        taken = await db.execute(select(User.id).where(User.email == changes["email"], User.id != user.id))
        if taken.first() is not None:
            raise AppError("Email already in use")
    for field, value in changes.items():
        if value is None and field in ("full_name", "is_active"):
            continue
        setattr(user, field, value)
    await db.commit()
    logger.info("User %s updated: %s", user_id, sorted(changes))
    return await load_user(db, user_id)


@router.delete("/users/{user_id}", response_model=DeleteResponse)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_user_admin),
) -> DeleteResponse:
    user = await load_user(db, user_id)
    if user.id == admin.id:
        raise AppError("You cannot delete your own account")
    has_profile = await db.execute(select(Employee.id).where(Employee.user_id == user.id))
    if has_profile.first() is not None:
        raise AppError("Cannot delete a user with an employee profile; delete the employee first")
    await db.delete(user)
    await db.commit()
    logger.info("User %s (%s) deleted", user_id, user.username)
    return DeleteResponse(success=True, message="User deleted successfully")


@router.post("/users/{user_id}/roles", response_model=UserRead, status_code=201)
async def add_user_role(
    user_id: int,
    body: RoleAssign,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> User:
    user = await load_user(db, user_id)
    role = await get_role(db, role_id=body.role_id, role_name=body.role_name)
    await assign_role(db, user, role)
    await db.commit()
    return await load_user(db, user_id)


@router.delete("/users/{user_id}/roles/{role_id}", response_model=UserRead)
async def remove_user_role(
    user_id: int,
    role_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> User:
    await load_user(db, user_id)
    result = await db.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
    )
    link = result.scalar_one_or_none()
    if link is None:
        raise NotFoundError("Role not assigned to this user")
    await db.delete(link)
    await db.commit()
    logger.info("Role %s removed from user %s", role_id, user_id)
    return await load_user(db, user_id)


# ── Leave shortcuts ─────────────────────────────────────────────────
@router.get("/leave-requests/pending", response_model=list[LeaveRequestRead])
async def pending_leave_requests(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_user_admin),
) -> list[LeaveRequest]:
    result = await db.execute(
        select(LeaveRequest)
        .where(LeaveRequest.status == LeaveStatus.PENDING.value)
        .order_by(LeaveRequest.applied_date)
    )
    return list(result.scalars().all())


@router.post("/leave-requests/{leave_id}/approve", response_model=LeaveRequestRead)
async def approve_leave_request(
    leave_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_user_admin),
) -> LeaveRequest:
    return await leave_service.decide_leave_request(db, leave_id, admin, LeaveStatus.APPROVED)


@router.post("/leave-requests/{leave_id}/deny", response_model=LeaveRequestRead)
async def deny_leave_request(
    leave_id: int,
    body: LeaveDenial,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_user_admin),
) -> LeaveRequest:
    return await leave_service.decide_leave_request(
        db, leave_id, admin, LeaveStatus.REJECTED, body.rejection_reason
    )
