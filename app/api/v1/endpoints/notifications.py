"""
Notification endpoints: inbox, read receipts and broadcasting.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (FORBIDDEN_MESSAGE, get_current_active_user,
                             get_db, get_employee_for_user, require_capability)
from app.core.exceptions import AppError, ForbiddenError, NotFoundError
from app.core.roles import Capability, has_capability
from app.models.notification import Notification, NotificationRecipient
from app.models.user import User
from app.schemas.attendance import DeleteResponse
from app.schemas.notification import (NotificationCreate, NotificationCreated,
                                      NotificationPage, NotificationRead,
                                      ReadAllResponse)
from app.services.notification_service import (mark_read, notify_users,
                                               recipient_entry,
                                               resolve_recipients, to_read)

router = APIRouter(prefix="/notifications", tags=["notifications"])
logger = logging.getLogger(__name__)


async def _load(db: AsyncSession, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification)
        .where(Notification.id == notification_id)
        .execution_options(populate_existing=True)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


def _not_expired(now: datetime):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


@router.get("", response_model=NotificationPage)
async def my_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationPage:
    """The caller's live notifications, newest first."""
    now = datetime.now(timezone.utc)
    mine = (
        select(Notification)
        .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
        .where(NotificationRecipient.user_id == current_user.id, _not_expired(now))
    )
    counted = (
        select(func.count(NotificationRecipient.id))
        .join(Notification, NotificationRecipient.notification_id == Notification.id)
        .where(NotificationRecipient.user_id == current_user.id, _not_expired(now))
    )
    total = (await db.execute(counted)).scalar_one()
    unread = (
        await db.execute(counted.where(NotificationRecipient.read.is_(False)))
    ).scalar_one()
    result = await db.execute(
        mine.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = [to_read(n, current_user.id) for n in result.unique().scalars().all()]
    return NotificationPage(
        count=len(items),
        total=total,
        unread=unread,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
        data=items,
    )


@router.get("/all", response_model=NotificationPage)
async def all_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_capability(Capability.VIEW_ALL_RECORDS)),
) -> NotificationPage:
    total = (await db.execute(select(func.count(Notification.id)))).scalar_one()
    result = await db.execute(
        select(Notification)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = [to_read(n) for n in result.unique().scalars().all()]
    return NotificationPage(
        count=len(items),
        total=total,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
        data=items,
    )


@router.post("", response_model=NotificationCreated, status_code=201)
async def send_notification(
    body: NotificationCreate,
    db: AsyncSession = Depends(get_db),
    sender: User = Depends(require_capability(Capability.NOTIFY_DEPARTMENT)),
) -> NotificationCreated:
    can_notify_all = has_capability(sender.roles, Capability.NOTIFY_ALL)
    if body.all_employees and not can_notify_all:
        raise ForbiddenError("Only administrators can notify all employees")
    if body.department_id is not None and not can_notify_all:
        own = await get_employee_for_user(db, sender.id)
        if own is None or own.dept_id != body.department_id:
            raise ForbiddenError("You can only notify your own department")

    user_ids = await resolve_recipients(
        db,
        user_ids=body.recipients,
        department_id=body.department_id,
        all_employees=body.all_employees,
    )
    if not user_ids:
        raise AppError("No valid recipients")

    notification = await notify_users(
        db,
        sender.id,
        user_ids,
        body.title,
        body.message,
        priority=body.priority,
        department_id=body.department_id,
        all_employees=body.all_employees,
        expires_at=body.expires_at,
    )
    await db.commit()
    notification = await _load(db, notification.id)
    return NotificationCreated(recipient_count=len(user_ids), data=to_read(notification))


@router.put("/read-all", response_model=ReadAllResponse)
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ReadAllResponse:
    result = await db.execute(
        update(NotificationRecipient)
        .where(NotificationRecipient.user_id == current_user.id, NotificationRecipient.read.is_(False))
        .values(read=True, read_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return ReadAllResponse(message="All notifications marked as read", count=result.rowcount or 0)


@router.put("/{notification_id}/read", response_model=NotificationRead)
async def mark_one_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    notification = await _load(db, notification_id)
    entry = recipient_entry(notification, current_user.id)
    if entry is None:
        raise ForbiddenError("You are not a recipient of this notification")
    if mark_read(entry):
        await db.commit()
        notification = await _load(db, notification_id)
    return to_read(notification, current_user.id)


@router.delete("/{notification_id}", response_model=DeleteResponse)
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DeleteResponse:
    """Admins delete outright; a recipient only removes it from their own inbox."""
    notification = await _load(db, notification_id)
    if has_capability(current_user.roles, Capability.NOTIFY_ALL):
        await db.delete(notification)
        await db.commit()
        logger.info("Notification %s deleted by user %s", notification_id, current_user.id)
        return DeleteResponse(success=True, message="Notification deleted")

    entry = recipient_entry(notification, current_user.id)
    if entry is None:
        raise ForbiddenError(FORBIDDEN_MESSAGE)
    notification.recipients.remove(entry)
    if not notification.recipients:
        await db.delete(notification)
    await db.commit()
    return DeleteResponse(success=True, message="Notification removed")
