"""Tests for registration, login, tokens, profile and the error envelope."""

import pytest
from httpx import AsyncClient

from app.core.roles import RoleName
from app.core.security import create_access_token

TEST_PASSWORD = "secret123"  # matches the conftest user factory

REGISTER = {
    "username": "jane",
    "email": "Jane@Example.com",
    "password": "hunter22",
    "full_name": "Jane Doe",
}


@pytest.mark.asyncio
async def test_register_returns_tokens_and_employee_role(async_client: AsyncClient):
    """POST /auth/register creates an EMPLOYEE and returns a token pair."""
    resp = await async_client.post("/api/auth/register", json=REGISTER)
    assert resp.status_code == 201
    data = resp.json()
    assert data["user"]["email"] == "jane@example.com"
    assert data["roles"] == ["EMPLOYEE"]
    assert data["access_token"] and data["refresh_token"]
    assert "access_token" in resp.cookies


@pytest.mark.asyncio
async def test_register_with_department_creates_profile(async_client: AsyncClient, create_department):
    """Passing department_id also creates an employee profile with a generated code."""
    dept_id = await create_department("Sales")
    resp = await async_client.post("/api/auth/register", json={**REGISTER, "department_id": dept_id})
    assert resp.status_code == 201
    token = resp.json()["access_token"]

    profile = await async_client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    employee = profile.json()["employee"]
    assert employee["dept_id"] == dept_id
    assert employee["employee_code"] == "EMP0001"
    assert employee["department_name"] == "Sales"


@pytest.mark.asyncio
async def test_register_duplicate_rejected(async_client: AsyncClient):
    """Registering the same username twice fails with the standard envelope."""
    await async_client.post("/api/auth/register", json=REGISTER)
    resp = await async_client.post(
        "/api/auth/register", json={**REGISTER, "email": "other@example.com"}
    )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "status": "fail", "message": "User already exists"}


@pytest.mark.asyncio
async def test_register_validation_error_is_400(async_client: AsyncClient):
    """Schema violations are reported as 400 with a readable message."""
    resp = await async_client.post("/api/auth/register", json={**REGISTER, "password": "123"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"].startswith("Validation failed")
    assert "password" in body["message"]


@pytest.mark.asyncio
async def test_login_by_username_and_email(async_client: AsyncClient, create_user):
    """Either the username or the email works as the login identifier."""
    await create_user("bob")
    for identifier in ("bob", "bob@example.com"):
        resp = await async_client.post(
            "/api/auth/login", data={"username": identifier, "password": TEST_PASSWORD}
        )
        assert resp.status_code == 200, identifier
        assert resp.json()["roles"] == ["EMPLOYEE"]


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, create_user):
    """Bad credentials give 401 with a Bearer challenge."""
    await create_user("bob")
    resp = await async_client.post("/api/auth/login", data={"username": "bob", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid username or password"
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_login_inactive_account(async_client: AsyncClient, create_user):
    """A deactivated account cannot log in."""
    await create_user("ghost", active=False)
    resp = await async_client.post("/api/auth/login", data={"username": "ghost", "password": TEST_PASSWORD})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_missing_token(async_client: AsyncClient):
    """Protected routes without a token return 401."""
    resp = await async_client.get("/api/auth/profile")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Not authorized, no token"


@pytest.mark.asyncio
async def test_garbage_token(async_client: AsyncClient):
    """An undecodable token is rejected with the invalid-token message."""
    resp = await async_client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token. Please log in again"


@pytest.mark.asyncio
async def test_refresh_token_cannot_be_used_as_access(async_client: AsyncClient, create_user):
    """Tokens carry their type; a refresh token is not an access token."""
    bob = await create_user("bob")
    login = await async_client.post("/api/auth/login", data={"username": "bob", "password": TEST_PASSWORD})
    refresh = login.json()["refresh_token"]

    resp = await async_client.get("/api/auth/profile", headers={"Authorization": f"Bearer {refresh}"})
    assert resp.status_code == 401

    rotated = await async_client.post("/api/auth/refresh", json={"refresh_token": refresh})
    assert rotated.status_code == 200
    assert rotated.json()["access_token"]
    assert bob.id


@pytest.mark.asyncio
async def test_cookie_auth(async_client: AsyncClient, create_user):
    """The HttpOnly access cookie authenticates when no header is sent."""
    user = await create_user("cookie_monster")
    async_client.cookies.set("access_token", f"Bearer {create_access_token(user.id)}")
    resp = await async_client.get("/api/auth/profile")
    assert resp.status_code == 200
    assert resp.json()["user"]["username"] == "cookie_monster"


@pytest.mark.asyncio
async def test_update_profile_and_duplicate_email(async_client: AsyncClient, create_user):
    """PUT /auth/profile updates fields and refuses an email that is taken."""
    bob = await create_user("bob")
    await create_user("alice")

    resp = await async_client.put(
        "/api/auth/profile", json={"full_name": "Robert", "gender": "male"}, headers=bob.headers
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["full_name"] == "Robert"
    assert resp.json()["user"]["gender"] == "MALE"

    clash = await async_client.put(
        "/api/auth/profile", json={"email": "alice@example.com"}, headers=bob.headers
    )
    assert clash.status_code == 400


@pytest.mark.asyncio
async def test_change_password(async_client: AsyncClient, create_user):
    """Password change checks confirmation and the current password."""
    bob = await create_user("bob")
    mismatch = await async_client.put(
        "/api/auth/password",
        json={"current_password": TEST_PASSWORD, "new_password": "newpass1", "confirm_password": "newpass2"},
        headers=bob.headers,
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["message"] == "Passwords do not match"

    wrong = await async_client.put(
        "/api/auth/password",
        json={"current_password": "wrong", "new_password": "newpass1", "confirm_password": "newpass1"},
        headers=bob.headers,
    )
    assert wrong.status_code == 401
    assert wrong.json()["message"] == "Current password is incorrect"

    ok = await async_client.put(
        "/api/auth/password",
        json={"current_password": TEST_PASSWORD, "new_password": "newpass1", "confirm_password": "newpass1"},
        headers=bob.headers,
    )
    assert ok.status_code == 200
    login = await async_client.post("/api/auth/login", data={"username": "bob", "password": "newpass1"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_unknown_route_uses_envelope(async_client: AsyncClient):
    """Framework 404s are wrapped in the standard error body."""
    resp = await async_client.get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["success"] is False
    assert resp.json()["status"] == "fail"


@pytest.mark.asyncio
async def test_roles_listing(async_client: AsyncClient, create_user):
    """GET /roles lists the three seeded roles."""
    bob = await create_user("bob")
    resp = await async_client.get("/api/roles", headers=bob.headers)
    assert resp.status_code == 200
    assert {r["role_name"] for r in resp.json()} == {r.value for r in RoleName}
