"""Tests for sending, reading and deleting notifications."""

import pytest
from httpx import AsyncClient

from app.core.roles import RoleName

MEMO = {"title": "Office closed", "message": "The office is closed on Friday.", "all_employees": True}


@pytest.mark.asyncio
async def test_admin_broadcast_reaches_every_employee(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    alice = await create_user("alice")

    resp = await async_client.post("/api/notifications", json=MEMO, headers=admin.headers)
    assert resp.status_code == 201
    assert resp.json()["recipient_count"] == 2
    assert resp.json()["data"]["all_employees"] is True

    for user in (bob, alice):
        inbox = (await async_client.get("/api/notifications", headers=user.headers)).json()
        assert inbox["total"] == 1
        assert inbox["unread"] == 1
        assert inbox["data"][0]["title"] == "Office closed"
        assert inbox["data"][0]["read"] is False

    assert (await async_client.get("/api/notifications", headers=admin.headers)).json()["total"] == 0


@pytest.mark.asyncio
async def test_read_one_and_read_all(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    first = (await async_client.post("/api/notifications", json=MEMO, headers=admin.headers)).json()
    await async_client.post(
        "/api/notifications", json={**MEMO, "title": "Second"}, headers=admin.headers
    )

    read = await async_client.put(f"/api/notifications/{first['data']['id']}/read", headers=bob.headers)
    assert read.status_code == 200
    assert read.json()["read"] is True
    assert read.json()["read_at"] is not None

    inbox = (await async_client.get("/api/notifications", headers=bob.headers)).json()
    assert (inbox["total"], inbox["unread"]) == (2, 1)

    everything = await async_client.put("/api/notifications/read-all", headers=bob.headers)
    assert everything.json()["count"] == 1
    assert (await async_client.get("/api/notifications", headers=bob.headers)).json()["unread"] == 0


@pytest.mark.asyncio
async def test_non_recipient_cannot_mark_read(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    alice = await create_user("alice")
    sent = await async_client.post(
        "/api/notifications",
        json={"title": "For Bob", "message": "Hello", "recipients": [bob.id]},
        headers=admin.headers,
    )
    notification_id = sent.json()["data"]["id"]

    resp = await async_client.put(f"/api/notifications/{notification_id}/read", headers=alice.headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "You are not a recipient of this notification"


@pytest.mark.asyncio
async def test_manager_scope(async_client: AsyncClient, create_user, create_department):
    """Managers may only notify their own department."""
    sales = await create_department("Sales")
    ops = await create_department("Ops")
    boss = await create_user("boss", RoleName.MANAGER, department_id=sales)
    bob = await create_user("bob", department_id=sales)
    await create_user("olga", department_id=ops)

    broadcast = await async_client.post("/api/notifications", json=MEMO, headers=boss.headers)
    assert broadcast.status_code == 403
    assert broadcast.json()["message"] == "Only administrators can notify all employees"

    other = await async_client.post(
        "/api/notifications",
        json={"title": "Hi", "message": "Ops only", "department_id": ops},
        headers=boss.headers,
    )
    assert other.status_code == 403

    own = await async_client.post(
        "/api/notifications",
        json={"title": "Standup", "message": "10am", "department_id": sales},
        headers=boss.headers,
    )
    assert own.status_code == 201
    assert own.json()["recipient_count"] == 2
    assert (await async_client.get("/api/notifications", headers=bob.headers)).json()["total"] == 1


@pytest.mark.asyncio
async def test_employee_cannot_send(async_client: AsyncClient, create_user):
    bob = await create_user("bob")
    resp = await async_client.post(
        "/api/notifications", json={"title": "x", "message": "y", "recipients": [bob.id]}, headers=bob.headers
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_target_is_required(async_client: AsyncClient, admin):
    resp = await async_client.post(
        "/api/notifications", json={"title": "x", "message": "y"}, headers=admin.headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_recipients_rejected(async_client: AsyncClient, admin):
    resp = await async_client.post(
        "/api/notifications", json={"title": "x", "message": "y", "recipients": [9999]}, headers=admin.headers
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "No valid recipients"


@pytest.mark.asyncio
async def test_recipient_delete_only_hides_own_copy(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    alice = await create_user("alice")
    notification_id = (
        await async_client.post("/api/notifications", json=MEMO, headers=admin.headers)
    ).json()["data"]["id"]

    resp = await async_client.delete(f"/api/notifications/{notification_id}", headers=bob.headers)
    assert resp.status_code == 200
    assert (await async_client.get("/api/notifications", headers=bob.headers)).json()["total"] == 0
    assert (await async_client.get("/api/notifications", headers=alice.headers)).json()["total"] == 1

    gone = await async_client.delete(f"/api/notifications/{notification_id}", headers=admin.headers)
    assert gone.status_code == 200
    assert (await async_client.get("/api/notifications", headers=alice.headers)).json()["total"] == 0


@pytest.mark.asyncio
async def test_all_notifications_view(async_client: AsyncClient, admin, create_user):
    bob = await create_user("bob")
    await async_client.post("/api/notifications", json=MEMO, headers=admin.headers)
    listing = await async_client.get("/api/notifications/all", headers=admin.headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert listing.json()["data"][0]["recipient_count"] == 1
    assert (await async_client.get("/api/notifications/all", headers=bob.headers)).status_code == 403
