"""
Notification model: a message fanned out to a fixed recipient list.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Integer, String,
                        UniqueConstraint)
from sqlalchemy.orm import relationship

from app.db.base import Base

NOTIFICATION_TTL = timedelta(days=30)


class Notification(Base):
    __tablename__ = "notifications"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    title: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    message: str = Column(String(500), nullable=False)  # type: ignore[assignment]
    sender_id: int | None = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # type: ignore[assignment]
    department_id: int | None = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)  # type: ignore[assignment]
    all_employees: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    priority: str = Column(String(10), nullable=False, default="medium")  # type: ignore[assignment]  # low | medium | high
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    expires_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc) + NOTIFICATION_TTL,
        index=True,
    )

    recipients = relationship(
        "NotificationRecipient",
        back_populates="notification",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    sender = relationship("User", lazy="joined")


class NotificationRecipient(Base):
    __tablename__ = "notification_recipients"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_notification_recipients_user"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    notification_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)  # type: ignore[assignment]
    read: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    read_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    notification = relationship("Notification", back_populates="recipients")
