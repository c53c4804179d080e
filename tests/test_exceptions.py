"""Tests for the error envelope produced by the global exception handlers."""

import json

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import _integrity_error_handler, duplicate_field_from


def _integrity(message: str) -> IntegrityError:
    return IntegrityError("INSERT INTO t VALUES (?)", {}, Exception(message))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "driver_message, expected",
    [
        ("UNIQUE constraint failed: leave_types.leave_code", "Duplicate field value: leave_code"),
        (
            'duplicate key value violates unique constraint "users_email_key"\n'
            "DETAIL:  Key (email)=(a@b.c) already exists.",
            "Duplicate field value: email",
        ),
        ("NOT NULL constraint failed: leave_requests.is_half_day", "Invalid data: constraint violated"),
        ("CHECK constraint failed: ck_leave_requests_date_order", "Invalid data: constraint violated"),
        (
            'insert or update on table "attendance" violates foreign key constraint\n'
            "DETAIL:  Key (emp_id)=(99) is not present in table \"employees\".",
            "Invalid data: constraint violated",
        ),
    ],
)
async def test_integrity_errors_are_classified(driver_message, expected):
    resp = await _integrity_error_handler(None, _integrity(driver_message))
    assert resp.status_code == 400
    assert json.loads(resp.body) == {"success": False, "status": "fail", "message": expected}


def test_duplicate_field_ignores_non_unique_violations():
    assert duplicate_field_from(_integrity("UNIQUE constraint failed: employees.employee_code")) == "employee_code"
    assert duplicate_field_from(_integrity("FOREIGN KEY constraint failed")) is None
