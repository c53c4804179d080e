"""
Centralised application settings loaded from environment / .env file.

Uses pydantic-settings so every value can be overridden via env vars
or the .env file at the project root.  Nothing secret has a usable default:
the first admin account is only seeded when FIRST_ADMIN_PASSWORD is set.
"""

from __future__ import annotations

import logging
import os
import tempfile

from pydantic import field_validator
from pydantic_settings import BaseSettings

_INSECURE_SECRET = "CHANGE-ME-TO-A-RANDOM-64-CHAR-HEX-STRING-IN-PRODUCTION"


class Settings(BaseSettings):
    # ── Project ──────────────────────────────────────────────────────
    PROJECT_NAME: str = "HR Attendance System"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # ── Database (async PostgreSQL via asyncpg) ─────────────────────
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/hr_attendance"
    DEBUG_SQL: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── JWT ──────────────────────────────────────────────────────────
    SECRET_KEY: str = _INSECURE_SECRET
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    COOKIE_SECURE: bool = False  # Set True in HTTPS production

    # ── Rate limiting (slowapi) ──────────────────────────────────────
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "5/minute"

    # ── CORS ─────────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v: object) -> list[str]:
        if isinstance(v, str) and not v.lstrip().startswith("["):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v  # type: ignore[return-value]

    # ── Logging ──────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    # ── Reports ──────────────────────────────────────────────────────
    REPORTS_TMP_DIR: str = os.path.join(tempfile.gettempdir(), "attendance-system-reports")

    # ── Seed data (applied on startup) ──────────────────────────────
    FIRST_ADMIN_USERNAME: str = "admin"
    FIRST_ADMIN_EMAIL: str = "admin@attendance.local"
    FIRST_ADMIN_PASSWORD: str | None = None
    # CODE:Name:quota entries, comma separated
    DEFAULT_LEAVE_TYPES: str = "AL:Annual Leave:20,SL:Sick Leave:10,CL:Casual Leave:5"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()

if settings.SECRET_KEY == _INSECURE_SECRET:
    logging.getLogger("app.core.config").warning(
        "⚠️  WARNING: You are running with the default INSECURE Secret Key! "
        "Update the SECRET_KEY in your .env file immediately."
    )
