"""Tests for report previews, downloads and the PDF column layout."""

import pytest
from httpx import AsyncClient

from app.core.roles import RoleName
from app.services.report_renderers import compute_column_widths
from app.services.report_service import performance_grade

RANGE = "start_date=2030-03-04&end_date=2030-03-04"


# ── Column widths ───────────────────────────────────────────────────
def test_widths_share_page_proportionally():
    widths = compute_column_widths(["a", "b"], ["A", "B"], [], 1000)
    assert widths == pytest.approx([492, 492])


def test_widths_pin_critical_columns_when_squeezed():
    widths = compute_column_widths(
        ["employeeName", "email", "date", "x"], ["Name", "Email", "Date", "X"], [], 300
    )
    assert widths == pytest.approx([140, 150, 80, 35])


def test_widths_shrink_non_critical_columns_first():
    widths = compute_column_widths(
        ["employeeName", "department", "status"], ["Employee", "Department", "Status"], [], 400
    )
    assert widths[0] == pytest.approx(150)
    assert sum(widths) == pytest.approx(376)


def test_widths_empty():
    assert compute_column_widths([], [], [], 500) == []


@pytest.mark.parametrize(
    "attendance,on_time,grade",
    [(100, 100, "A"), (90, 90, "A"), (80, 80, "B"), (100, 0, "C"), (60, 60, "D"), (50, 50, "F")],
)
def test_performance_grade(attendance, on_time, grade):
    assert performance_grade(attendance, on_time) == grade


# ── Endpoints ───────────────────────────────────────────────────────
async def _worked_day(client: AsyncClient, admin, employee_id: int) -> None:
    resp = await client.post(
        "/api/attendance",
        json={
            "emp_id": employee_id,
            "attendance_date": "2030-03-04",
            "check_in": "2030-03-04T09:00:00Z",
            "check_out": "2030-03-04T17:30:00Z",
        },
        headers=admin.headers,
    )
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_performance_data(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    await _worked_day(async_client, admin, bob.employee_id)

    resp = await async_client.get(f"/api/reports/performance/data?{RANGE}", headers=admin.headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Performance Report"
    assert data["metadata"]["Period"] == "2030-03-04 to 2030-03-04"
    assert data["count"] == 1
    row = data["data"][0]
    assert row["daysPresent"] == 1
    assert row["attendancePercentage"] == "100.00%"
    assert row["onTimeArrival"] == "100.00%"
    assert row["performanceScore"] == "A"


@pytest.mark.asyncio
async def test_attendance_csv_download(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    await _worked_day(async_client, admin, bob.employee_id)

    resp = await async_client.get(f"/api/reports/attendance?{RANGE}&format=csv", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="Attendance_Report_' in resp.headers["content-disposition"]
    lines = resp.text.splitlines()
    assert lines[0] == "Date,Employee Name,Employee Code,Email,Check In,Check Out,Status,Work Hours"
    assert len(lines) == 2


@pytest.mark.asyncio
async def test_excel_and_pdf_downloads(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    await _worked_day(async_client, admin, bob.employee_id)

    excel = await async_client.get(f"/api/reports/leave?{RANGE}&format=excel", headers=admin.headers)
    assert excel.status_code == 200
    assert excel.content[:2] == b"PK"

    pdf = await async_client.get(f"/api/reports/attendance?{RANGE}&format=pdf", headers=admin.headers)
    assert pdf.content[:4] == b"%PDF"


@pytest.mark.asyncio
async def test_unknown_format_falls_back_to_pdf(async_client: AsyncClient, admin):
    resp = await async_client.get(f"/api/reports/attendance?{RANGE}&format=docx", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content[:4] == b"%PDF"


@pytest.mark.asyncio
async def test_dates_required(async_client: AsyncClient, admin):
    resp = await async_client.get("/api/reports/attendance/data", headers=admin.headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Start date and end date are required"


@pytest.mark.asyncio
async def test_unknown_report_kind(async_client: AsyncClient, admin):
    resp = await async_client.get(f"/api/reports/payroll/data?{RANGE}", headers=admin.headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_employee_report_needs_no_dates(async_client: AsyncClient, admin, create_user, create_department):
    dept_id = await create_department("Sales")
    await create_user("bob", department_id=dept_id)
    await create_user("alice")

    resp = await async_client.get(f"/api/reports/employee/data?department_id={dept_id}", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["metadata"]["Department"] == "Sales"
    assert [r["department"] for r in resp.json()["data"]] == ["Sales"]


@pytest.mark.asyncio
async def test_report_access(async_client: AsyncClient, create_user):
    bob = await create_user("bob")
    boss = await create_user("boss", RoleName.MANAGER)
    assert (await async_client.get(f"/api/reports/attendance/data?{RANGE}", headers=bob.headers)).status_code == 403
    assert (await async_client.get(f"/api/reports/attendance/data?{RANGE}", headers=boss.headers)).status_code == 200
