"""Tests for check-in / check-out, attendance records and the work schedule."""

from datetime import date, datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import RoleName
from app.models.attendance import Attendance, AttendanceStatus, Holiday
from app.models.attendance_settings import AttendanceSettings
from app.models.employee import Employee
from app.models.leave import LeaveRequest, LeaveStatus, LeaveType
from app.services.attendance_service import resolve_day_status
from app.services.work_schedule import apply_worked_hours, is_on_time, iter_days

CHECK_IN_STATUSES = {"PRESENT", "WEEKEND", "HOLIDAY", "LEAVE"}


def _schedule(**overrides) -> AttendanceSettings:
    values = dict(
        work_start="09:00", work_end="17:00", grace_minutes=15,
        half_day_hours=4.0, full_day_hours=8.0, timezone_offset="+00:00",
    )
    values.update(overrides)
    return AttendanceSettings(**values)


# ── Check-in / out ──────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_check_in_twice_rejected(async_client: AsyncClient, create_user):
    """The second check-in of the day is refused."""
    bob = await create_user("bob")
    first = await async_client.post("/api/attendance/check-in", headers=bob.headers)
    assert first.status_code == 200
    assert first.json()["status"] in CHECK_IN_STATUSES
    assert first.json()["check_in"] is not None

    second = await async_client.post("/api/attendance/check-in", headers=bob.headers)
    assert second.status_code == 400
    assert second.json()["message"] == "Already checked in today"


@pytest.mark.asyncio
async def test_check_out_without_check_in(async_client: AsyncClient, create_user):
    bob = await create_user("bob")
    resp = await async_client.post("/api/attendance/check-out", headers=bob.headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "No check-in record found for today"


@pytest.mark.asyncio
async def test_check_in_then_out(async_client: AsyncClient, create_user):
    """Checking out stamps the time once; a second check-out is refused."""
    bob = await create_user("bob")
    await async_client.post("/api/attendance/check-in", json={"remarks": "early bird"}, headers=bob.headers)
    out = await async_client.post("/api/attendance/check-out", headers=bob.headers)
    assert out.status_code == 200
    data = out.json()
    assert data["check_out"] is not None
    assert data["work_hours"] >= 0
    assert data["remarks"] == "early bird"

    again = await async_client.post("/api/attendance/check-out", headers=bob.headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Already checked out today"


@pytest.mark.asyncio
async def test_check_in_needs_employee_profile(async_client: AsyncClient, create_user):
    loner = await create_user("loner", employee=False)
    resp = await async_client.post("/api/attendance/check-in", headers=loner.headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_summary_reports_today(async_client: AsyncClient, create_user):
    bob = await create_user("bob")
    before = await async_client.get("/api/attendance/summary", headers=bob.headers)
    assert before.json()["checked_in_today"] is False
    assert before.json()["leave_balance"] == {"AL": 20.0, "CL": 5.0, "SL": 10.0}

    await async_client.post("/api/attendance/check-in", headers=bob.headers)
    after = await async_client.get("/api/attendance/summary", headers=bob.headers)
    assert after.json()["checked_in_today"] is True
    assert after.json()["checked_out_today"] is False


@pytest.mark.asyncio
async def test_summary_without_profile(async_client: AsyncClient, admin):
    resp = await async_client.get("/api/attendance/summary", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["stats"]["present"] == 0
    assert "No employee profile" in resp.json()["message"]


# ── Day status ──────────────────────────────────────────────────────
MONDAY = date(2030, 3, 4)
SATURDAY = date(2030, 3, 9)


async def _employee(db: AsyncSession, emp_id: int) -> Employee:
    return await db.get(Employee, emp_id)


@pytest.mark.asyncio
async def test_day_status_weekday_and_weekend(db_session: AsyncSession, create_user):
    bob = await create_user("bob")
    employee = await _employee(db_session, bob.employee_id)
    assert await resolve_day_status(db_session, employee, MONDAY) == AttendanceStatus.PRESENT
    assert await resolve_day_status(db_session, employee, SATURDAY) == AttendanceStatus.WEEKEND


@pytest.mark.asyncio
async def test_day_status_holiday_scoped_to_departments(
    db_session: AsyncSession, create_department, create_user
):
    engineering = await create_department("Engineering")
    sales = await create_department("Sales")
    bob = await create_user("bob", department_id=engineering)
    db_session.add(Holiday(holiday_name="Sales offsite", holiday_date=MONDAY, applicable_depts=str(sales)))
    db_session.add(Holiday(holiday_name="Founders day", holiday_date=SATURDAY, applicable_depts="ALL"))
    db_session.add(
        Holiday(
            holiday_name="Team day", holiday_date=date(2030, 3, 5),
            applicable_depts=f"{sales}, {engineering}",
        )
    )
    db_session.add(
        Holiday(holiday_name="Optional day", holiday_date=date(2030, 3, 6), is_optional=True)
    )
    await db_session.commit()

    employee = await _employee(db_session, bob.employee_id)
    assert await resolve_day_status(db_session, employee, MONDAY) == AttendanceStatus.PRESENT
    assert await resolve_day_status(db_session, employee, SATURDAY) == AttendanceStatus.HOLIDAY
    assert await resolve_day_status(db_session, employee, date(2030, 3, 5)) == AttendanceStatus.HOLIDAY
    assert await resolve_day_status(db_session, employee, date(2030, 3, 6)) == AttendanceStatus.PRESENT


def test_holiday_applies_to():
    assert Holiday(applicable_depts="ALL").applies_to(None)
    assert Holiday(applicable_depts="1, 3").applies_to(3)
    assert not Holiday(applicable_depts="1,3").applies_to(2)
    assert not Holiday(applicable_depts="1").applies_to(None)


@pytest.mark.asyncio
async def test_day_status_approved_leave_beats_holiday(db_session: AsyncSession, create_user):
    bob = await create_user("bob")
    annual = (
        await db_session.execute(select(LeaveType).where(LeaveType.leave_code == "AL"))
    ).scalar_one()
    db_session.add(Holiday(holiday_name="Founders day", holiday_date=MONDAY, applicable_depts="ALL"))
    for status, start in ((LeaveStatus.APPROVED, MONDAY), (LeaveStatus.PENDING, date(2030, 3, 11))):
        db_session.add(
            LeaveRequest(
                emp_id=bob.employee_id, leave_type_id=annual.id, start_date=start, end_date=start,
                duration=1, reason="Trip", status=status.value, is_half_day=False,
            )
        )
    await db_session.commit()

    employee = await _employee(db_session, bob.employee_id)
    assert await resolve_day_status(db_session, employee, MONDAY) == AttendanceStatus.LEAVE
    # a pending request does not count
    assert await resolve_day_status(db_session, employee, date(2030, 3, 11)) == AttendanceStatus.PRESENT


# ── Manual records ──────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_manual_record_derives_hours_and_rejects_duplicates(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    body = {
        "emp_id": bob.employee_id,
        "attendance_date": "2030-03-04",
        "check_in": "2030-03-04T09:00:00Z",
        "check_out": "2030-03-04T14:00:00Z",
        "status": "PRESENT",
    }
    created = await async_client.post("/api/attendance", json=body, headers=admin.headers)
    assert created.status_code == 201
    assert created.json()["work_hours"] == 5.0
    assert created.json()["status"] == "HALF_DAY"

    dup = await async_client.post("/api/attendance", json=body, headers=admin.headers)
    assert dup.status_code == 400


@pytest.mark.asyncio
async def test_bulk_create_skips_existing(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    await async_client.post(
        "/api/attendance",
        json={"emp_id": bob.employee_id, "attendance_date": "2030-03-04"},
        headers=admin.headers,
    )
    resp = await async_client.post(
        "/api/attendance/bulk",
        json={
            "records": [
                {"emp_id": bob.employee_id, "attendance_date": "2030-03-04"},
                {"emp_id": bob.employee_id, "attendance_date": "2030-03-05"},
                {"emp_id": 9999, "attendance_date": "2030-03-05"},
            ]
        },
        headers=admin.headers,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["created"] == 1
    assert [s["reason"] for s in data["skipped"]] == ["Record already exists", "Employee not found"]


@pytest.mark.asyncio
async def test_record_views_respect_capabilities(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    alice = await create_user("alice")
    boss = await create_user("boss", RoleName.MANAGER)
    await async_client.post(
        "/api/attendance",
        json={"emp_id": bob.employee_id, "attendance_date": "2030-03-04"},
        headers=admin.headers,
    )

    assert (await async_client.get(f"/api/attendance/employee/{bob.employee_id}", headers=bob.headers)).status_code == 200
    assert (await async_client.get(f"/api/attendance/employee/{bob.employee_id}", headers=alice.headers)).status_code == 403
    assert (await async_client.get("/api/attendance", headers=boss.headers)).status_code == 403

    day = await async_client.get("/api/attendance/date/2030-03-04", headers=boss.headers)
    assert day.status_code == 200
    assert day.json()["total"] == 1
    assert day.json()["present"] == 1

    everything = await async_client.get(
        "/api/attendance?start_date=2030-03-01&end_date=2030-03-31", headers=admin.headers
    )
    assert len(everything.json()) == 1


@pytest.mark.asyncio
async def test_update_and_delete_record(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    created = await async_client.post(
        "/api/attendance",
        json={"emp_id": bob.employee_id, "attendance_date": "2030-03-04", "status": "ABSENT"},
        headers=admin.headers,
    )
    record_id = created.json()["id"]

    updated = await async_client.put(
        f"/api/attendance/{record_id}",
        json={"check_in": "2030-03-04T08:00:00Z", "check_out": "2030-03-04T17:00:00Z"},
        headers=admin.headers,
    )
    assert updated.status_code == 200
    assert updated.json()["work_hours"] == 9.0
    assert updated.json()["status"] == "PRESENT"

    deleted = await async_client.delete(f"/api/attendance/{record_id}", headers=admin.headers)
    assert deleted.status_code == 200
    assert (await async_client.delete(f"/api/attendance/{record_id}", headers=admin.headers)).status_code == 404


# ── Work schedule ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_settings_round_trip(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    assert (await async_client.get("/api/settings", headers=bob.headers)).status_code == 403

    current = await async_client.get("/api/settings", headers=admin.headers)
    assert current.json()["work_start"] == "09:00"

    updated = await async_client.put(
        "/api/settings", json={"grace_minutes": 5, "timezone_offset": "+05:00"}, headers=admin.headers
    )
    assert updated.status_code == 200
    assert updated.json()["grace_minutes"] == 5
    assert updated.json()["timezone_offset"] == "+05:00"

    bad = await async_client.put("/api/settings", json={"work_start": "9am"}, headers=admin.headers)
    assert bad.status_code == 400


def test_apply_worked_hours_thresholds():
    schedule = _schedule()
    start = datetime(2030, 3, 4, 9, 0, tzinfo=timezone.utc)

    full = Attendance(status=AttendanceStatus.ABSENT.value, check_in=start,
                      check_out=datetime(2030, 3, 4, 17, 30, tzinfo=timezone.utc))
    apply_worked_hours(full, schedule)
    assert (full.status, full.work_hours) == ("PRESENT", 8.5)

    half = Attendance(status=AttendanceStatus.PRESENT.value, check_in=start,
                      check_out=datetime(2030, 3, 4, 13, 0, tzinfo=timezone.utc))
    apply_worked_hours(half, schedule)
    assert half.status == "HALF_DAY"

    holiday = Attendance(status=AttendanceStatus.HOLIDAY.value, check_in=start,
                         check_out=datetime(2030, 3, 4, 18, 0, tzinfo=timezone.utc))
    apply_worked_hours(holiday, schedule)
    assert holiday.status == "HOLIDAY"
    assert holiday.work_hours == 9.0


def test_on_time_uses_local_offset_and_grace():
    schedule = _schedule(timezone_offset="+05:00")
    # 04:10 UTC is 09:10 local: inside the 15 minute grace window
    assert is_on_time(datetime(2030, 3, 4, 4, 10, tzinfo=timezone.utc), schedule)
    assert not is_on_time(datetime(2030, 3, 4, 4, 20, tzinfo=timezone.utc), schedule)
    # naive timestamps are treated as UTC
    assert is_on_time(datetime(2030, 3, 4, 4, 15), schedule)


def test_iter_days_inclusive():
    assert list(iter_days(date(2030, 2, 27), date(2030, 3, 2))) == [
        date(2030, 2, 27), date(2030, 2, 28), date(2030, 3, 1), date(2030, 3, 2),
    ]
