"""
Domain error type + global exception handlers.

Every error leaves the API as ``{"success": false, "status": ..., "message": ...}``
where ``status`` is ``"fail"`` for client errors and ``"error"`` for server
errors.  Stack traces are logged, never returned.
"""

from __future__ import annotations

import logging
import re

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class AppError(Exception):
    """Business-rule violation carrying the HTTP status to report."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppError):
    status_code = 404


class ForbiddenError(AppError):
    status_code = 403


class AuthenticationError(AppError):
    status_code = 401


# ── Helpers ─────────────────────────────────────────────────────────
_PG_DUPLICATE_RE = re.compile(r"Key \((?P<field>[^)]+)\)=")
_SQLITE_DUPLICATE_RE = re.compile(r"UNIQUE constraint failed: (?P<fields>[\w., ]+)")
_UNIQUE_RE = re.compile(r"UNIQUE constraint failed|duplicate key value", re.IGNORECASE)
_PG_UNIQUE_VIOLATION = "23505"


def _error_body(status_code: int, message: str) -> dict:
    return {
        "success": False,
        "status": "fail" if status_code < 500 else "error",
        "message": message,
    }


def _orig_text(exc: IntegrityError) -> str:
    return str(exc.orig) if exc.orig is not None else str(exc)


def is_unique_violation(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "sqlstate", None) == _PG_UNIQUE_VIOLATION:
        return True
    return bool(_UNIQUE_RE.search(_orig_text(exc)))


def duplicate_field_from(exc: IntegrityError) -> str | None:
    """Best-effort extraction of the offending column from a unique violation."""
    if not is_unique_violation(exc):
        return None
    text = _orig_text(exc)
    match = _PG_DUPLICATE_RE.search(text)
    if match:
        return match.group("field")
    match = _SQLITE_DUPLICATE_RE.search(text)
    if match:
        columns = [c.strip().split(".")[-1] for c in match.group("fields").split(",")]
        return ", ".join(columns)
    return None


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Validation failed: " + "; ".join(parts)


# ── Handlers ────────────────────────────────────────────────────────
async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.message),
        headers=headers,
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=_error_body(400, _format_validation_errors(exc)))


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Database integrity error: %s", exc.orig)
    if not is_unique_violation(exc):
        message = "Invalid data: constraint violated"
    else:
        field = duplicate_field_from(exc)
        message = f"Duplicate field value: {field}" if field else "Duplicate field value"
    return JSONResponse(status_code=400, content=_error_body(400, message))


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content=_error_body(500, "Internal database error"))


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(status_code=500, content=_error_body(500, "Internal server error"))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
