"""
Notification fan-out helpers shared by the notifications API and the leave
coordinator.  Nothing here commits; callers own the transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.employee import Employee
from app.models.notification import Notification, NotificationRecipient
from app.models.user import User
from app.schemas.notification import NotificationRead

logger = logging.getLogger(__name__)


async def resolve_recipients(
    db: AsyncSession,
    *,
    user_ids: Iterable[int] | None = None,
    department_id: int | None = None,
    all_employees: bool = False,
) -> list[int]:
    """Active user ids addressed by one of the three targeting modes."""
    stmt = select(User.id).where(User.is_active.is_(True))
    if all_employees:
        stmt = stmt.join(Employee, Employee.user_id == User.id)
    elif department_id is not None:
        stmt = stmt.join(Employee, Employee.user_id == User.id).where(
            Employee.dept_id == department_id
        )
    else:
        ids = {int(i) for i in (user_ids or [])}
        if not ids:
            return []
        stmt = stmt.where(User.id.in_(ids))
    result = await db.execute(stmt.order_by(User.id))
    return list(dict.fromkeys(result.scalars().all()))


async def notify_users(
    db: AsyncSession,
    sender_id: int | None,
    user_ids: Iterable[int],
    title: str,
    message: str,
    *,
    priority: str = "medium",
    department_id: int | None = None,
    all_employees: bool = False,
    expires_at: datetime | None = None,
) -> Notification:
    notification = Notification(
        title=title[:100],
        message=message[:500],
        sender_id=sender_id,
        priority=priority,
        department_id=department_id,
        all_employees=all_employees,
    )
    if expires_at is not None:
        notification.expires_at = expires_at
    notification.recipients = [NotificationRecipient(user_id=uid) for uid in dict.fromkeys(user_ids)]
    db.add(notification)
    await db.flush()
    logger.info(
        "Notification %s '%s' queued for %d recipient(s)",
        notification.id, notification.title, len(notification.recipients),
    )
    return notification


def recipient_entry(notification: Notification, user_id: int) -> NotificationRecipient | None:
    return next((r for r in notification.recipients if r.user_id == user_id), None)


def to_read(notification: Notification, viewer_id: int | None = None) -> NotificationRead:
    entry = recipient_entry(notification, viewer_id) if viewer_id is not None else None
    sender = notification.sender
    return NotificationRead(
        id=notification.id,
        title=notification.title,
        message=notification.message,
        priority=notification.priority,
        sender_id=notification.sender_id,
        sender_name=(sender.full_name or sender.username) if sender is not None else None,
        department_id=notification.department_id,
        all_employees=notification.all_employees,
        created_at=notification.created_at,
        expires_at=notification.expires_at,
        read=entry.read if entry is not None else False,
        read_at=entry.read_at if entry is not None else None,
        recipient_count=len(notification.recipients),
    )


def mark_read(entry: NotificationRecipient) -> bool:
    if entry.read:
        return False
    entry.read = True
    entry.read_at = datetime.now(timezone.utc)
    return True
