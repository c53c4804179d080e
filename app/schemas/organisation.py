"""Pydantic schemas for departments, employees and holidays."""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

_CODE_RE = re.compile(r"^[A-Z0-9-]{2,20}$")


# ── Department ──────────────────────────────────────────────────────
class DepartmentCreate(BaseModel):
    dept_name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("dept_name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Department name must not be empty")
        return v


class DepartmentUpdate(BaseModel):
    dept_name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class DepartmentHeadAssign(BaseModel):
    employee_id: int


class DepartmentRead(BaseModel):
    id: int
    dept_name: str
    description: str | None
    dept_head_id: int | None
    employee_count: int = 0
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Employee ────────────────────────────────────────────────────────
class EmployeeCreate(BaseModel):
    user_id: int
    dept_id: int | None = None
    designation: str | None = Field(default=None, max_length=100)
    hire_date: date | None = None
    employee_code: str | None = None
    reporting_manager_id: int | None = None

    @field_validator("employee_code")
    @classmethod
    def _code(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().upper()
        if not _CODE_RE.match(v):
            raise ValueError("Employee code must be 2-20 uppercase letters, digits or dashes")
        return v


class EmployeeUpdate(BaseModel):
    dept_id: int | None = None
    designation: str | None = Field(default=None, max_length=100)
    hire_date: date | None = None
    employee_code: str | None = None

    @field_validator("employee_code")
    @classmethod
    def _code(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().upper()
        if not _CODE_RE.match(v):
            raise ValueError("Employee code must be 2-20 uppercase letters, digits or dashes")
        return v


class ManagerAssign(BaseModel):
    manager_id: int


class EmployeeRead(BaseModel):
    id: int
    user_id: int
    employee_code: str
    full_name: str
    email: str | None
    dept_id: int | None
    department_name: str | None
    designation: str | None
    hire_date: date | None
    reporting_manager_id: int | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# ── Holiday ─────────────────────────────────────────────────────────
class HolidayCreate(BaseModel):
    holiday_name: str = Field(min_length=1, max_length=100)
    holiday_date: date
    is_optional: bool = False
    applicable_depts: str = "ALL"
    description: str | None = Field(default=None, max_length=500)

    @field_validator("applicable_depts")
    @classmethod
    def _depts(cls, v: str) -> str:
        v = v.strip()
        if v.upper() == "ALL" or not v:
            return "ALL"
        parts = [p.strip() for p in v.split(",") if p.strip()]
        if not all(p.isdigit() for p in parts):
            raise ValueError("applicable_depts must be 'ALL' or comma-separated department ids")
        return ",".join(parts)


class HolidayUpdate(BaseModel):
    holiday_name: str | None = Field(default=None, min_length=1, max_length=100)
    holiday_date: date | None = None
    is_optional: bool | None = None
    description: str | None = Field(default=None, max_length=500)


class HolidayRead(BaseModel):
    id: int
    holiday_name: str
    holiday_date: date
    is_optional: bool
    applicable_depts: str
    description: str | None

    model_config = {"from_attributes": True}
