"""Pydantic schemas for JWT tokens."""

from __future__ import annotations

from pydantic import BaseModel

from app.core.roles import RoleName
from app.schemas.organisation import EmployeeRead
from app.schemas.user import UserRead


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: UserRead
    roles: list[RoleName]


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileResponse(BaseModel):
    user: UserRead
    roles: list[RoleName]
    employee: EmployeeRead | None = None
