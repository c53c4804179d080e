"""Holiday calendar endpoints."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, require_capability
from app.core.exceptions import AppError, NotFoundError
from app.core.roles import Capability
from app.models.attendance import Holiday
from app.models.user import User
from app.schemas.attendance import DeleteResponse
from app.schemas.organisation import HolidayCreate, HolidayRead, HolidayUpdate

router = APIRouter(prefix="/holidays", tags=["holidays"])
logger = logging.getLogger(__name__)

require_org_admin = require_capability(Capability.MANAGE_ORGANISATION)


async def _get_holiday(db: AsyncSession, holiday_id: int) -> Holiday:
    holiday = await db.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFoundError("Holiday not found")
    return holiday


async def _ensure_unique(db: AsyncSession, name: str, day: date, exclude_id: int | None = None) -> None:
    stmt = select(Holiday.id).where(Holiday.holiday_name == name, Holiday.holiday_date == day)
    if exclude_id is not None:
        stmt = stmt.where(Holiday.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise AppError("A holiday with this name already exists on that date")


@router.get("", response_model=list[HolidayRead])
async def list_holidays(
    year: int | None = Query(None, ge=1900, le=2999),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> list[Holiday]:
    stmt = select(Holiday).order_by(Holiday.holiday_date)
    if year is not None:
        stmt = stmt.where(Holiday.holiday_date >= date(year, 1, 1), Holiday.holiday_date <= date(year, 12, 31))
    return list((await db.execute(stmt)).scalars().all())


@router.post("", response_model=HolidayRead, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Holiday:
    name = body.holiday_name.strip()
    await _ensure_unique(db, name, body.holiday_date)
    holiday = Holiday(**body.model_dump(exclude={"holiday_name"}), holiday_name=name)
    db.add(holiday)
    await db.commit()
    await db.refresh(holiday)
    logger.info("Holiday %s on %s created", holiday.holiday_name, holiday.holiday_date)
    return holiday


@router.put("/{holiday_id}", response_model=HolidayRead)
async def update_holiday(
    holiday_id: int,
    body: HolidayUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> Holiday:
    holiday = await _get_holiday(db, holiday_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    name = changes.get("holiday_name", holiday.holiday_name).strip()
    day = changes.get("holiday_date", holiday.holiday_date)
    if (name, day) != (holiday.holiday_name, holiday.holiday_date):
        await _ensure_unique(db, name, day, exclude_id=holiday_id)
    changes["holiday_name"] = name
    for field, value in changes.items():
        setattr(holiday, field, value)
    await db.commit()
    await db.refresh(holiday)
    return holiday


@router.delete("/{holiday_id}", response_model=DeleteResponse)
async def delete_holiday(
    holiday_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_org_admin),
) -> DeleteResponse:
    holiday = await _get_holiday(db, holiday_id)
    await db.delete(holiday)
    await db.commit()
    logger.info("Holiday %s deleted", holiday_id)
    return DeleteResponse(success=True, message="Holiday deleted successfully")
