"""Pydantic schemas for leave types, balances and requests."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.leave import LeaveStatus

_LEAVE_CODE_RE = re.compile(r"^[A-Z]{2,10}$")


# ── Leave types ─────────────────────────────────────────────────────
class LeaveTypeCreate(BaseModel):
    leave_code: str
    leave_name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_carry_forward: bool = False
    default_annual_quota: float = Field(default=0, ge=0, le=365)
    requires_approval: bool = True
    max_consecutive_days: int = Field(default=0, ge=0, le=365)

    @field_validator("leave_code")
    @classmethod
    def _code(cls, v: str) -> str:
        v = v.strip().upper()
        if not _LEAVE_CODE_RE.match(v):
            raise ValueError("Leave code must be 2-10 letters")
        return v


class LeaveTypeUpdate(BaseModel):
    leave_name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_carry_forward: bool | None = None
    default_annual_quota: float | None = Field(default=None, ge=0, le=365)
    requires_approval: bool | None = None
    max_consecutive_days: int | None = Field(default=None, ge=0, le=365)


class LeaveTypeRead(BaseModel):
    id: int
    leave_code: str
    leave_name: str
    description: str | None
    is_carry_forward: bool
    default_annual_quota: float
    requires_approval: bool
    max_consecutive_days: int

    model_config = {"from_attributes": True}


# ── Balances ────────────────────────────────────────────────────────
class LeaveBalanceRead(BaseModel):
    id: int | None  # None for a type with no stored balance yet
    emp_id: int
    leave_type_id: int
    leave_code: str
    leave_name: str
    year: int
    allocated_leaves: float
    used_leaves: float
    pending_leaves: float
    carried_forward: float
    available: float


class LeaveBalanceUpdate(BaseModel):
    leave_type_id: int
    year: int | None = None
    allocated_leaves: float | None = Field(default=None, ge=0, le=365)
    carried_forward: float | None = Field(default=None, ge=0, le=365)


# ── Requests ────────────────────────────────────────────────────────
class LeaveRequestCreate(BaseModel):
    leave_type_id: int
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=500)
    duration: float | None = None
    is_half_day: bool = False
    contact_during_leave: str | None = Field(default=None, max_length=100)
    emp_id: int | None = None  # admins may file on behalf of an employee

    @field_validator("reason", mode="before")
    @classmethod
    def _strip_reason(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("Start date must be before or equal to end date")
        if self.is_half_day and self.start_date != self.end_date:
            raise ValueError("A half-day leave must start and end on the same day")
        return self


class LeaveRequestUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = Field(default=None, min_length=1, max_length=500)
    is_half_day: bool | None = None
    contact_during_leave: str | None = Field(default=None, max_length=100)

    @field_validator("reason", mode="before")
    @classmethod
    def _strip_reason(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


class LeaveDecision(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    rejection_reason: str | None = Field(default=None, max_length=500)


class LeaveDenial(BaseModel):
    rejection_reason: str = Field(min_length=1, max_length=500)

    @field_validator("rejection_reason", mode="before")
    @classmethod
    def _strip_reason(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


class LeaveRequestRead(BaseModel):
    id: int
    emp_id: int
    employee_code: str | None = None
    employee_name: str | None = None
    leave_type_id: int
    leave_code: str | None = None
    leave_name: str | None = None
    start_date: date
    end_date: date
    duration: float
    reason: str
    status: LeaveStatus
    is_half_day: bool
    contact_during_leave: str | None
    applied_date: datetime | None
    last_modified: datetime | None
    approved_by: int | None
    rejection_reason: str | None

    model_config = {"from_attributes": True}
