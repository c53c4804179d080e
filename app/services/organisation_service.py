"""
Users, roles and employee profiles: lookups shared by several routers.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, NotFoundError
from app.core.roles import RoleName
from app.models.employee import Department, Employee
from app.models.user import Role, User, UserRole

logger = logging.getLogger(__name__)

_GENERATED_CODE_RE = re.compile(r"^EMP(\d+)$")


async def load_user(db: AsyncSession, user_id: int) -> User:
    """Fresh copy of a user with its role links, after a commit."""
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def load_employee(db: AsyncSession, employee_id: int) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id).execution_options(populate_existing=True)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise NotFoundError("Employee not found")
    return employee


async def get_department(db: AsyncSession, department_id: int) -> Department:
    department = await db.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department not found")
    return department


async def get_role(db: AsyncSession, *, role_id: int | None = None, role_name: RoleName | None = None) -> Role:
    stmt = select(Role)
    if role_id is not None:
        stmt = stmt.where(Role.id == role_id)
    else:
        stmt = stmt.where(Role.role_name == RoleName(role_name).value)
    role = (await db.execute(stmt)).scalar_one_or_none()
    if role is None:
        raise NotFoundError("Role not found")
    return role


async def assign_role(db: AsyncSession, user: User, role: Role) -> UserRole:
    """Attach *role* to *user*; 400 when it is already there.  Does not commit."""
    existing = await db.execute(
        select(UserRole).where(UserRole.user_id == user.id, UserRole.role_id == role.id)
    )
    if existing.scalar_one_or_none() is not None:
        raise AppError("Role already assigned to this user")
    link = UserRole(user_id=user.id, role_id=role.id)
    db.add(link)
    await db.flush()
    logger.info("Role %s assigned to user %s", role.role_name, user.username)
    return link


async def ensure_role(db: AsyncSession, user: User, name: RoleName) -> None:
    role = await get_role(db, role_name=name)
    existing = await db.execute(
        select(UserRole.id).where(UserRole.user_id == user.id, UserRole.role_id == role.id)
    )
    if existing.scalar_one_or_none() is None:
        db.add(UserRole(user_id=user.id, role_id=role.id))
        await db.flush()


async def next_employee_code(db: AsyncSession) -> str:
    """``EMP`` + 4-digit sequence, one past the highest generated code."""
    codes = await db.execute(select(Employee.employee_code).where(Employee.employee_code.like("EMP%")))
    highest = 0
    for (code,) in codes.all():
        match = _GENERATED_CODE_RE.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"EMP{highest + 1:04d}"


async def create_employee_profile(
    db: AsyncSession,
    user: User,
    *,
    dept_id: int | None = None,
    designation: str | None = None,
    hire_date=None,
    employee_code: str | None = None,
    reporting_manager_id: int | None = None,
) -> Employee:
    """Insert the employee row and make sure the user holds EMPLOYEE.  Does not commit."""
    existing = await db.execute(select(Employee.id).where(Employee.user_id == user.id))
    if existing.scalar_one_or_none() is not None:
        raise AppError("Employee profile already exists for this user")
    if dept_id is not None:
        await get_department(db, dept_id)
    if reporting_manager_id is not None and await db.get(Employee, reporting_manager_id) is None:
        raise NotFoundError("Reporting manager not found")

    employee = Employee(
        user_id=user.id,
        dept_id=dept_id,
        designation=designation,
        employee_code=employee_code or await next_employee_code(db),
        reporting_manager_id=reporting_manager_id,
    )
    if hire_date is not None:
        employee.hire_date = hire_date
    db.add(employee)
    await ensure_role(db, user, RoleName.EMPLOYEE)
    await db.flush()
    logger.info("Employee profile %s created for user %s", employee.employee_code, user.username)
    return employee


async def employee_counts(db: AsyncSession) -> dict[int, int]:
    rows = await db.execute(
        select(Employee.dept_id, func.count(Employee.id))
        .where(Employee.dept_id.is_not(None))
        .group_by(Employee.dept_id)
    )
    return {dept_id: count for dept_id, count in rows.all()}
