"""Pydantic schemas for users, roles and the auth/profile endpoints."""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.roles import RoleName

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,50}$")
VALID_GENDERS = ["MALE", "FEMALE", "OTHER"]


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    return v


def _normalise_gender(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip().upper()
    if v not in VALID_GENDERS:
        raise ValueError(f"Gender must be one of: {VALID_GENDERS}")
    return v


# ── Auth ────────────────────────────────────────────────────────────
class UserRegister(BaseModel):
    username: str
    email: str
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=200)
    contact_number: str | None = None
    gender: str | None = None
    department_id: int | None = None

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        v = v.strip()
        if not _USERNAME_RE.match(v):
            raise ValueError("Username must be 3-50 letters, digits, dots, dashes or underscores")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("gender")
    @classmethod
    def _gender(cls, v: str | None) -> str | None:
        return _normalise_gender(v)


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, max_length=200)
    email: str | None = None
    contact_number: str | None = None
    gender: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _normalise_email(v) if v is not None else v

    @field_validator("gender")
    @classmethod
    def _gender(cls, v: str | None) -> str | None:
        return _normalise_gender(v)


class AdminUserUpdate(ProfileUpdate):
    is_active: bool | None = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)
    confirm_password: str


# ── Reads ───────────────────────────────────────────────────────────
class RoleRead(BaseModel):
    id: int
    role_name: str
    description: str | None

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    full_name: str | None
    contact_number: str | None = None
    gender: str | None = None
    join_date: date | None = None
    is_active: bool
    roles: list[RoleName] = []
    created_at: datetime | None

    model_config = {"from_attributes": True}


class RoleAssign(BaseModel):
    role_id: int | None = None
    role_name: RoleName | None = None

    @model_validator(mode="after")
    def _one_of(self) -> "RoleAssign":
        if self.role_id is None and self.role_name is None:
            raise ValueError("Either role_id or role_name is required")
        return self
