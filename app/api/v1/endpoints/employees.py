"""
Employee CRUD + reporting-line endpoints.

- Listing everyone needs VIEW_ALL_RECORDS; team views need VIEW_TEAM.
- An employee may always read their own profile.
- POST / PUT / DELETE require MANAGE_ORGANISATION.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (ensure_self_or, get_current_active_user, get_db,
                             require_capability)
from app.core.exceptions import AppError, NotFoundError
from app.core.roles import Capability
from app.models.attendance import Attendance
from app.models.employee import Department, Employee
from app.models.leave import LeaveBalance, LeaveRequest
from app.models.user import User
from app.schemas.attendance import DeleteResponse
from app.schemas.organisation import (EmployeeCreate, EmployeeRead,
                                      EmployeeUpdate, ManagerAssign)
from app.services.organisation_service import (create_employee_profile,
                                               get_department, load_employee)

router = APIRouter(prefix="/employees", tags=["employees"])
logger = logging.getLogger(__name__)

require_org_admin = require_capability(Capability.MANAGE_ORGANISATION)


@router.get("", response_model=list[EmployeeRead])
async def list_employees(
    department_id: int | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_capability(Capability.VIEW_ALL_RECORDS)),
) -> list[Employee]:
    stmt = select(Employee).order_by(Employee.employee_code)
    if department_id is not None:
        stmt = stmt.where(Employee.dept_id == department_id)
    result = await db.execute(stmt.offset(skip).limit(limit))
    return list(result.scalars().all())


@router.get("/department/{department_id}", response_model=list[EmployeeRead])
async def list_department_employees(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_capability(Capability.VIEW_TEAM)),
) -> list[Employee]:
    await get_department(db, department_id)
    result = await db.execute(
        select(Employee).where(Employee.dept_id == department_id).order_by(Employee.employee_code)
    )
    return list(result.scalars().all())


@router.get("/manager/{manager_id}", response_model=list[EmployeeRead])
async def list_direct_reports(
    manager_id: int,
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_capability(Capability.VIEW_TEAM)),
) -> list[Employee]:
    result = await db.execute(
        select(Employee)
        .where(Employee.reporting_manager_id == manager_id)
        .order_by(Employee.employee_code)
    )
    return list(result.scalars().all())


@router.get("/{employee_id}", response_model=EmployeeRead)
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Employee:
    await ensure_self_or(db, current_user, employee_id)
    return await load_employee(db, employee_id)


@router.post("", response_model=EmployeeRead, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Employee:
    user = await db.get(User, body.user_id)
    if user is None:
        raise NotFoundError("User not found")
    if body.employee_code is not None:
        taken = await db.execute(select(Employee.id).where(Employee.employee_code == body.employee_code))
        if taken.first() is not None:
            raise AppError("Employee code already in use")

    employee = await create_employee_profile(
        db,
        user,
        dept_id=body.dept_id,
        designation=body.designation,
        hire_date=body.hire_date,
        employee_code=body.employee_code,
        reporting_manager_id=body.reporting_manager_id,
    )
    await db.commit()
    return await load_employee(db, employee.id)


@router.put("/{employee_id}", response_model=EmployeeRead)
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Employee:
    employee = await load_employee(db, employee_id)
    changes = body.model_dump(exclude_unset=True)

    if changes.get("dept_id") is not None:
        await get_department(db, changes["dept_id"])
    if changes.get("employee_code") and changes["employee_code"] != employee.employee_code:
        taken = await db.execute(
            select(Employee.id).where(
                Employee.employee_code == changes["employee_code"], Employee.id != employee_id
            )
        )
        if taken.first() is not None:
            raise AppError("Employee code already in use")
    for field, value in changes.items():
        if value is None and field in ("employee_code", "hire_date"):
            continue
        setattr(employee, field, value)

    await db.commit()
    logger.info("Employee %s updated: %s", employee_id, sorted(changes))
    return await load_employee(db, employee_id)


@router.put("/{employee_id}/manager", response_model=EmployeeRead)
async def assign_manager(
    employee_id: int,
    body: ManagerAssign,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Employee:
    employee = await load_employee(db, employee_id)
    if body.manager_id == employee_id:
        raise AppError("An employee cannot be their own manager")
    if await db.get(Employee, body.manager_id) is None:
        raise NotFoundError("Manager not found")
    employee.reporting_manager_id = body.manager_id
    await db.commit()
    return await load_employee(db, employee_id)


@router.delete("/{employee_id}", response_model=DeleteResponse)
async def delete_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DeleteResponse:
    """Delete an employee and their attendance, leave requests and balances."""
    employee = await load_employee(db, employee_id)
    code = employee.employee_code

    await db.execute(delete(Attendance).where(Attendance.emp_id == employee_id))
    await db.execute(delete(LeaveRequest).where(LeaveRequest.emp_id == employee_id))
    await db.execute(delete(LeaveBalance).where(LeaveBalance.emp_id == employee_id))
    # Detach reporting lines and department headship before the row goes
    reports = await db.execute(select(Employee).where(Employee.reporting_manager_id == employee_id))
    for report in reports.scalars().all():
        report.reporting_manager_id = None
    headed = await db.execute(select(Department).where(Department.dept_head_id == employee_id))
    for department in headed.scalars().all():
        department.dept_head_id = None
    await db.delete(employee)
    await db.commit()

    logger.info("Employee %s (%s) deleted with related records", employee_id, code)
    return DeleteResponse(success=True, message="Employee deleted successfully")
