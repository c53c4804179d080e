"""
Auth endpoints: register, login (OAuth2 password flow), token refresh,
logout and the caller's own profile / password.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, get_employee_for_user
from app.core.config import settings
from app.core.exceptions import AppError, AuthenticationError
from app.core.roles import RoleName
from app.core.security import (create_access_token, create_refresh_token,
                               decode_refresh_token, get_password_hash,
                               verify_password)
from app.models.user import User
from app.schemas.attendance import MessageResponse
from app.schemas.organisation import EmployeeRead
from app.schemas.token import AuthResponse, ProfileResponse, RefreshRequest, Token
from app.schemas.user import PasswordChange, ProfileUpdate, UserRead, UserRegister
from app.services.organisation_service import (create_employee_profile,
                                               ensure_role, load_employee,
                                               load_user)

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _auth_response(response: Response, user: User) -> AuthResponse:
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id)
    _set_auth_cookies(response, access_token, refresh_token)
    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserRead.model_validate(user),
        roles=user.roles,
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: UserRegister,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Self-service sign-up; every new account starts as an EMPLOYEE."""
    existing = await db.execute(
        select(User.id).where(or_(User.username == body.username, User.email == body.email))
    )
    if existing.first() is not None:
        raise AppError("User already exists")

    user = User(
        username=body.username,
        email=body.email,
        hashed_password=get_password_hash(body.password),
        full_name=body.full_name.strip(),
        contact_number=body.contact_number,
        gender=body.gender,
    )
    db.add(user)
    await db.flush()
    await ensure_role(db, user, RoleName.EMPLOYEE)
    if body.department_id is not None:
        await create_employee_profile(db, user, dept_id=body.department_id)
    await db.commit()

    user = await load_user(db, user.id)
    logger.info("User registered: %s", user.username)
    return _auth_response(response, user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_for_access_token(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Authenticate with username (or email) and password. Also sets HttpOnly cookies."""
    identifier = form_data.username.strip()
    result = await db.execute(
        select(User).where(or_(User.username == identifier, User.email == identifier.lower()))
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(form_data.password, user.hashed_password):
        logger.info("Failed login for %r", identifier)
        raise AuthenticationError("Invalid username or password")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )

    return _auth_response(response, user)


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_access_token_endpoint(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> Token:
    # Priority: Body > Cookie
    token_str = body.refresh_token if body and body.refresh_token else refresh_token_cookie
    if not token_str:
        raise AuthenticationError("Refresh token missing")

    payload = decode_refresh_token(token_str)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token. Please log in again") from None

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    new_access = create_access_token(user.id)
    new_refresh = create_refresh_token(user.id)
    _set_auth_cookies(response, new_access, new_refresh)
    return Token(access_token=new_access, refresh_token=new_refresh)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return MessageResponse(message="Logged out")


# ── Own profile ─────────────────────────────────────────────────────
@router.get("/profile", response_model=ProfileResponse)
async def read_profile(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    employee = await get_employee_for_user(db, current_user.id)
    return ProfileResponse(
        user=UserRead.model_validate(current_user),
        roles=current_user.roles,
        employee=EmployeeRead.model_validate(employee) if employee is not None else None,
    )


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> ProfileResponse:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != current_user.email:
        taken = await db.execute(
            select(User.id).where(User.email == changes["email"], User.id != current_user.id)
        )
        if taken.first() is not None:
            raise AppError("Email already in use")
    for field, value in changes.items():
        if field == "full_name" and value is None:
            continue
        setattr(current_user, field, value)
    await db.commit()

    user = await load_user(db, current_user.id)
    employee = await get_employee_for_user(db, user.id)
    if employee is not None:
        employee = await load_employee(db, employee.id)
    return ProfileResponse(
        user=UserRead.model_validate(user),
        roles=user.roles,
        employee=EmployeeRead.model_validate(employee) if employee is not None else None,
    )


@router.put("/password", response_model=MessageResponse)
async def change_password(
    body: PasswordChange,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    if body.new_password != body.confirm_password:
        raise AppError("Passwords do not match")
    if not verify_password(body.current_password, current_user.hashed_password):
        raise AuthenticationError("Current password is incorrect")
    current_user.hashed_password = get_password_hash(body.new_password)
    await db.commit()
    logger.info("Password changed for user %s", current_user.username)
    return MessageResponse(message="Password updated successfully")
