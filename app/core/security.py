"""
JWT token creation / verification and password hashing (bcrypt).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import AuthenticationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY

TOKEN_EXPIRED = "Token expired. Please log in again"
TOKEN_INVALID = "Invalid token. Please log in again"


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def create_access_token(
    subject: str | Any,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {"exp": expire, "sub": str(subject), "type": "access"},
        _SECRET,
        algorithm=_ALGORITHM,
    )


def create_refresh_token(subject: str | Any) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return jwt.encode(
        {"exp": expire, "sub": str(subject), "type": "refresh"},
        _SECRET,
        algorithm=_ALGORITHM,
    )


def _decode(token: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise AuthenticationError(TOKEN_EXPIRED) from exc
    except JWTError as exc:
        raise AuthenticationError(TOKEN_INVALID) from exc
    if payload.get("type") != expected_type or payload.get("sub") is None:
        raise AuthenticationError(TOKEN_INVALID)
    return payload


def decode_access_token(token: str) -> dict:
    """Return the payload of a valid *access* token.

    Raises ``AuthenticationError`` (401) when the token is expired, malformed,
    or of the wrong type.
    """
    return _decode(token, "access")


def decode_refresh_token(token: str) -> dict:
    """Return the payload of a valid *refresh* token (see ``decode_access_token``)."""
    return _decode(token, "refresh")
