"""
Startup seeding: roles, default leave types, the work-schedule row and
(only when FIRST_ADMIN_PASSWORD is configured) the first admin account.

Every step is idempotent.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.roles import ROLE_DESCRIPTIONS, RoleName
from app.core.security import get_password_hash
from app.models.leave import LeaveType
from app.models.user import Role, User, UserRole
from app.services.work_schedule import get_or_create_settings

logger = logging.getLogger(__name__)


async def seed_roles(db: AsyncSession) -> int:
    existing = set((await db.execute(select(Role.role_name))).scalars().all())
    added = 0
    for name in RoleName:
        if name.value not in existing:
            db.add(Role(role_name=name.value, description=ROLE_DESCRIPTIONS[name]))
            added += 1
    await db.commit()
    return added


def parse_leave_type_defaults(raw: str) -> list[tuple[str, str, float]]:
    """``"AL:Annual Leave:20,SL:Sick Leave:10"`` -> [(code, name, quota), ...]"""
    entries: list[tuple[str, str, float]] = []
    for chunk in raw.split(","):
        parts = [p.strip() for p in chunk.split(":")]
        if len(parts) != 3 or not parts[0]:
            if chunk.strip():
                logger.warning("Ignoring malformed leave type default %r", chunk)
            continue
        try:
            quota = float(parts[2])
        except ValueError:
            logger.warning("Ignoring leave type %r with non-numeric quota", parts[0])
            continue
        entries.append((parts[0].upper(), parts[1], quota))
    return entries


async def seed_leave_types(db: AsyncSession) -> int:
    existing = set((await db.execute(select(LeaveType.leave_code))).scalars().all())
    added = 0
    for code, name, quota in parse_leave_type_defaults(settings.DEFAULT_LEAVE_TYPES):
        if code not in existing:
            db.add(LeaveType(leave_code=code, leave_name=name, default_annual_quota=quota))
            added += 1
    await db.commit()
    return added


async def seed_first_admin(db: AsyncSession) -> User | None:
    if not settings.FIRST_ADMIN_PASSWORD:
        logger.info("FIRST_ADMIN_PASSWORD not set; skipping admin seeding")
        return None
    result = await db.execute(
        select(User).where(
            or_(User.username == settings.FIRST_ADMIN_USERNAME, User.email == settings.FIRST_ADMIN_EMAIL)
        )
    )
    if result.scalar_one_or_none() is not None:
        return None

    admin_role = (
        await db.execute(select(Role).where(Role.role_name == RoleName.ADMIN.value))
    ).scalar_one()
    admin = User(
        username=settings.FIRST_ADMIN_USERNAME,
        email=settings.FIRST_ADMIN_EMAIL,
        hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
        full_name="System Administrator",
    )
    db.add(admin)
    await db.flush()
    db.add(UserRole(user_id=admin.id, role_id=admin_role.id))
    await db.commit()
    logger.info("Default admin created: %s (password: <redacted>)", settings.FIRST_ADMIN_EMAIL)
    return admin


async def seed_all(db: AsyncSession) -> None:
    roles = await seed_roles(db)
    leave_types = await seed_leave_types(db)
    await get_or_create_settings(db)
    await db.commit()
    await seed_first_admin(db)
    logger.info("Seed complete: %d role(s), %d leave type(s) added", roles, leave_types)
