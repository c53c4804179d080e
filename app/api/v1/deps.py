"""
FastAPI dependencies: auth guards, capability checks and database session.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Any, Optional

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthenticationError, ForbiddenError
from app.core.roles import Capability, has_capability
from app.core.security import decode_access_token
from app.db.session import async_session_factory
from app.models.employee import Employee
from app.models.user import User

# We use auto_error=False so we can manually check for the cookie if header is missing
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False
)

FORBIDDEN_MESSAGE = "You do not have permission to perform this action"


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),  # Read from HttpOnly Cookie
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""

    # Priority: Header > Cookie
    final_token = token
    if not final_token and access_token:
        # auth.py sets the cookie as "Bearer <token>"
        final_token = access_token.removeprefix("Bearer ").strip()

    if not final_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(final_token)

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token. Please log in again") from None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("The user belonging to this token no longer exists")
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    return current_user


def require_capability(
    capability: Capability,
) -> Callable[..., Coroutine[Any, Any, User]]:
    """Build a dependency that only lets users holding *capability* through."""

    async def _guard(current_user: User = Depends(get_current_active_user)) -> User:
        if not has_capability(current_user.roles, capability):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_MESSAGE)
        return current_user

    _guard.__name__ = f"require_{capability.value}"
    return _guard


# ── Employee helpers ────────────────────────────────────────────────
async def get_employee_for_user(db: AsyncSession, user_id: int) -> Employee | None:
    result = await db.execute(select(Employee).where(Employee.user_id == user_id))
    return result.scalar_one_or_none()


async def get_current_employee(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """The caller's own employee profile; 404 when there is none."""
    employee = await get_employee_for_user(db, current_user.id)
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee profile not found for this user")
    return employee


async def ensure_self_or(
    db: AsyncSession,
    user: User,
    employee_id: int,
    capability: Capability = Capability.VIEW_TEAM,
) -> None:
    """Allow access to *employee_id*'s records for the employee or a capability holder."""
    if has_capability(user.roles, capability):
        return
    own = await get_employee_for_user(db, user.id)
    if own is None or own.id != employee_id:
        raise ForbiddenError(FORBIDDEN_MESSAGE)
