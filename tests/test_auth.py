"""Tests for authentication endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.db.enums import RoleName
from easypark.db.models import PasswordResetToken
from easypark.services.users import issue_reset_token

SIGN_UP = "/api/v1/auth/sign-up"
SIGN_IN = "/api/v1/auth/sign-in"


@pytest.mark.asyncio
async def test_sign_up_creates_customer(async_client: AsyncClient, db_session: AsyncSession):
    """Test registering a customer with a vehicle."""
    response = await async_client.post(
        SIGN_UP,
        json={
            "email": "New.User@Example.com",
            "password": "secret123",
            "full_name": "New User",
            "phone": "0770000000",
            "vehicle_number": "cab-1234",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["user"]["email"] == "new.user@example.com"
    assert data["role"] == "CUSTOMER"
    assert data["roles"] == ["CUSTOMER"]
    assert data["token"]
    assert "token=" in response.headers["set-cookie"]

    async_client.cookies.clear()
    vehicles = await async_client.get(
        "/api/v1/profile/vehicles", headers={"Authorization": f"Bearer {data['token']}"}
    )
    assert vehicles.status_code == 200
    assert [v["vehicle_number"] for v in vehicles.json()] == ["CAB-1234"]


@pytest.mark.asyncio
async def test_sign_up_rejects_duplicate_email(async_client: AsyncClient, customer):
    response = await async_client.post(
        SIGN_UP,
        json={"email": "CUSTOMER@example.com", "password": "secret123", "full_name": "Someone"},
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_sign_up_rejects_short_password(async_client: AsyncClient, db_session: AsyncSession):
    response = await async_client.post(
        SIGN_UP,
        json={"email": "short@example.com", "password": "abc", "full_name": "Short"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_sign_up_rejects_vehicle_of_another_customer(async_client: AsyncClient, db_session: AsyncSession):
    """Test that a vehicle number cannot be claimed twice."""
    first = await async_client.post(
        SIGN_UP,
        json={"email": "one@example.com", "password": "secret123", "full_name": "One", "vehicle_number": "XY-1"},
    )
    assert first.status_code == 201

    second = await async_client.post(
        SIGN_UP,
        json={"email": "two@example.com", "password": "secret123", "full_name": "Two", "vehicle_number": "xy-1"},
    )
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_sign_in(async_client: AsyncClient, land_owner):
    """Test signing in returns the legacy role label and a token."""
    response = await async_client.post(SIGN_IN, json={"email": "owner@example.com", "password": "secret123"})
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "LAND_OWNER"
    assert data["roles"] == ["LANDOWNER"]

    async_client.cookies.clear()
    me = await async_client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "owner@example.com"


@pytest.mark.asyncio
async def test_sign_in_wrong_password(async_client: AsyncClient, customer):
    response = await async_client.post(SIGN_IN, json={"email": "customer@example.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_sign_in_disabled_account(async_client: AsyncClient, db_session: AsyncSession, customer):
    customer.is_active = False
    await db_session.commit()

    response = await async_client.post(SIGN_IN, json={"email": "customer@example.com", "password": "secret123"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Account disabled"


@pytest.mark.asyncio
async def test_me_requires_authentication(async_client: AsyncClient, db_session: AsyncSession):
    response = await async_client.get("/api/v1/auth/me")
    assert response.status_code == 401

    response = await async_client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_deactivated_user(
    async_client: AsyncClient, db_session: AsyncSession, customer, auth_headers
):
    headers = auth_headers(customer)
    customer.is_active = False
    await db_session.commit()

    response = await async_client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_sign_out_clears_cookie(async_client: AsyncClient, db_session: AsyncSession):
    response = await async_client.post("/api/v1/auth/sign-out")
    assert response.status_code == 200
    assert response.json()["message"] == "Signed out"
    assert "token=" in response.headers["set-cookie"]


@pytest.mark.asyncio
async def test_forgot_password_is_generic(async_client: AsyncClient, db_session: AsyncSession, customer):
    """Test that known and unknown emails get the same answer."""
    unknown = await async_client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    known = await async_client.post("/api/v1/auth/forgot-password", json={"email": "customer@example.com"})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()

    count = await db_session.scalar(select(func.count()).select_from(PasswordResetToken))
    assert count == 1


@pytest.mark.asyncio
async def test_forgot_password_rate_limited_per_email(
    async_client: AsyncClient, db_session: AsyncSession, customer
):
    for _ in range(7):
        response = await async_client.post(
            "/api/v1/auth/forgot-password", json={"email": "customer@example.com"}
        )
        assert response.status_code == 200

    count = await db_session.scalar(select(func.count()).select_from(PasswordResetToken))
    assert count == 5


@pytest.mark.asyncio
async def test_reset_password_flow(async_client: AsyncClient, db_session: AsyncSession, customer):
    """Test resetting a password with an issued token."""
    token = await issue_reset_token(db_session, customer)
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/auth/reset-password",
        json={"token": token, "new_password": "brandnew1", "confirm_password": "brandnew1"},
    )
    assert response.status_code == 200

    old = await async_client.post(SIGN_IN, json={"email": "customer@example.com", "password": "secret123"})
    assert old.status_code == 401
    new = await async_client.post(SIGN_IN, json={"email": "customer@example.com", "password": "brandnew1"})
    assert new.status_code == 200

    reused = await async_client.post(
        "/api/v1/auth/reset-password",
        json={"token": token, "new_password": "another1", "confirm_password": "another1"},
    )
    assert reused.status_code == 400
    assert reused.json()["detail"] == "Invalid or expired reset token"


@pytest.mark.asyncio
async def test_reset_password_validation(async_client: AsyncClient, db_session: AsyncSession):
    mismatch = await async_client.post(
        "/api/v1/auth/reset-password",
        json={"token": "abc", "new_password": "secret123", "confirm_password": "secret124"},
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"] == "Passwords do not match"

    missing = await async_client.post("/api/v1/auth/reset-password", json={"token": "abc"})
    assert missing.status_code == 400


@pytest.mark.asyncio
async def test_reset_password_rate_limited(async_client: AsyncClient, db_session: AsyncSession):
    payload = {"token": "bogus", "new_password": "secret123", "confirm_password": "secret123"}
    for _ in range(25):
        response = await async_client.post("/api/v1/auth/reset-password", json=payload)
        assert response.status_code == 400

    response = await async_client.post("/api/v1/auth/reset-password", json=payload)
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_staff_token_roles(async_client: AsyncClient, make_user, auth_headers):
    """Test that a user holding several roles reports all of them."""
    user = await make_user("multi@example.com", roles=(RoleName.WASHER, RoleName.COUNTER))

    response = await async_client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "COUNTER"
    assert set(data["roles"]) == {"WASHER", "COUNTER"}
