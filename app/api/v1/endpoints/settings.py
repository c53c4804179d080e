"""
Work schedule endpoints: admin-configurable attendance rules.

Singleton pattern: only one row in attendance_settings. GET retrieves it,
PUT updates it. If no row exists, one is created with defaults.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_capability
from app.core.exceptions import AppError
from app.core.roles import Capability
from app.models.attendance_settings import AttendanceSettings
from app.models.user import User
from app.schemas.attendance import AttendanceSettingsRead, AttendanceSettingsUpdate
from app.services.work_schedule import get_or_create_settings

router = APIRouter(tags=["settings"])
logger = logging.getLogger(__name__)

require_org_admin = require_capability(Capability.MANAGE_ORGANISATION)


@router.get("/settings", response_model=AttendanceSettingsRead)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> AttendanceSettings:
    """Get current attendance rules."""
    att_settings = await get_or_create_settings(db)
    await db.commit()
    return att_settings


@router.put("/settings", response_model=AttendanceSettingsRead)
async def update_settings(
    body: AttendanceSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> AttendanceSettings:
    """Update attendance rules (work hours, grace period, day thresholds, timezone)."""
    att_settings = await get_or_create_settings(db)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(att_settings, field, value)

    if att_settings.work_end <= att_settings.work_start:
        raise AppError("Work end must be after work start")
    if att_settings.half_day_hours > att_settings.full_day_hours:
        raise AppError("Half-day hours cannot exceed full-day hours")

    await db.commit()
    await db.refresh(att_settings)
    logger.info("Attendance settings updated: %s", changes)
    return att_settings
