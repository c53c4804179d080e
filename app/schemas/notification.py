"""Pydantic schemas for notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class NotificationCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    message: str = Field(min_length=1, max_length=500)
    priority: Literal["low", "medium", "high"] = "medium"
    expires_at: datetime | None = None
    recipients: list[int] | None = None
    department_id: int | None = None
    all_employees: bool = False

    @model_validator(mode="after")
    def _target(self) -> "NotificationCreate":
        targets = sum(
            [bool(self.recipients), self.department_id is not None, self.all_employees]
        )
        if targets == 0:
            raise ValueError("Specify recipients, department_id or all_employees")
        if targets > 1:
            raise ValueError("Specify only one of recipients, department_id or all_employees")
        return self


class NotificationRead(BaseModel):
    id: int
    title: str
    message: str
    priority: str
    sender_id: int | None
    sender_name: str | None = None
    department_id: int | None
    all_employees: bool
    created_at: datetime | None
    expires_at: datetime | None
    read: bool = False
    read_at: datetime | None = None
    recipient_count: int = 0


class NotificationPage(BaseModel):
    success: bool = True
    count: int
    total: int
    unread: int | None = None
    page: int
    pages: int
    data: list[NotificationRead]


class NotificationCreated(BaseModel):
    success: bool = True
    recipient_count: int
    data: NotificationRead


class ReadAllResponse(BaseModel):
    success: bool = True
    message: str
    count: int
