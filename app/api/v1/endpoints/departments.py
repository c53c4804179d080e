"""
Department endpoints.

- GET operations require any authenticated user.
- POST / PUT / DELETE require the MANAGE_ORGANISATION capability.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, require_capability
from app.core.exceptions import AppError, NotFoundError
from app.core.roles import Capability
from app.models.employee import Department, Employee
from app.models.user import User
from app.schemas.attendance import DeleteResponse
from app.schemas.organisation import (DepartmentCreate, DepartmentHeadAssign,
                                      DepartmentRead, DepartmentUpdate)
from app.services.organisation_service import employee_counts, get_department

router = APIRouter(prefix="/departments", tags=["departments"])
logger = logging.getLogger(__name__)

require_org_admin = require_capability(Capability.MANAGE_ORGANISATION)


def _read(department: Department, count: int) -> DepartmentRead:
    read = DepartmentRead.model_validate(department)
    read.employee_count = count
    return read


async def _employee_count(db: AsyncSession, department_id: int) -> int:
    result = await db.execute(select(func.count(Employee.id)).where(Employee.dept_id == department_id))
    return result.scalar_one()


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    stmt = select(Department.id).where(func.lower(Department.dept_name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise AppError("Department with this name already exists")


@router.get("", response_model=list[DepartmentRead])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> list[DepartmentRead]:
    departments = (await db.execute(select(Department).order_by(Department.dept_name))).scalars().all()
    counts = await employee_counts(db)
    return [_read(d, counts.get(d.id, 0)) for d in departments]


@router.get("/{department_id}", response_model=DepartmentRead)
async def get_department_by_id(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> DepartmentRead:
    department = await get_department(db, department_id)
    return _read(department, await _employee_count(db, department_id))


@router.post("", response_model=DepartmentRead, status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DepartmentRead:
    await _ensure_unique_name(db, body.dept_name)
    department = Department(dept_name=body.dept_name, description=body.description)
    db.add(department)
    await db.commit()
    await db.refresh(department)
    logger.info("Department created: %s", department.dept_name)
    return _read(department, 0)


@router.put("/{department_id}", response_model=DepartmentRead)
async def update_department(
    department_id: int,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DepartmentRead:
    department = await get_department(db, department_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("dept_name"):
        changes["dept_name"] = changes["dept_name"].strip()
        await _ensure_unique_name(db, changes["dept_name"], exclude_id=department_id)
    for field, value in changes.items():
        if field == "dept_name" and not value:
            continue
        setattr(department, field, value)
    await db.commit()
    await db.refresh(department)
    return _read(department, await _employee_count(db, department_id))


@router.delete("/{department_id}", response_model=DeleteResponse)
async def delete_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DeleteResponse:
    department = await get_department(db, department_id)
    count = await _employee_count(db, department_id)
    if count > 0:
        raise AppError(
            f"Cannot delete department with {count} employee(s); reassign them first"
        )
    await db.delete(department)
    await db.commit()
    logger.info("Department %s deleted", department_id)
    return DeleteResponse(success=True, message="Department deleted successfully")


@router.put("/{department_id}/head", response_model=DepartmentRead)
async def assign_department_head(
    department_id: int,
    body: DepartmentHeadAssign,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DepartmentRead:
    department = await get_department(db, department_id)
    employee = await db.get(Employee, body.employee_id)
    if employee is None:
        raise NotFoundError("Employee not found")
    if employee.dept_id != department_id:
        raise AppError("The department head must belong to the department")
    department.dept_head_id = employee.id
    await db.commit()
    await db.refresh(department)
    logger.info("Employee %s is now head of department %s", employee.employee_code, department.dept_name)
    return _read(department, await _employee_count(db, department_id))
