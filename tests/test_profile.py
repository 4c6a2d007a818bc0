"""Tests for profile and vehicle endpoints."""

import pytest
from httpx import AsyncClient

PROFILE = "/api/v1/profile"


@pytest.mark.asyncio
async def test_get_profile(async_client: AsyncClient, customer, auth_headers):
    response = await async_client.get(PROFILE, headers=auth_headers(customer))
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "customer@example.com"
    assert data["full_name"] == "Nimal Perera"
    assert data["vehicles"] == []


@pytest.mark.asyncio
async def test_update_profile_details(async_client: AsyncClient, customer, auth_headers):
    """Test updating name, NIC and address."""
    response = await async_client.patch(
        PROFILE,
        headers=auth_headers(customer),
        json={"full_name": "Nimal P.", "nic": " 901234567V ", "residential_address": "Kandy"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["full_name"] == "Nimal P."
    assert data["nic"] == "901234567V"
    assert data["residential_address"] == "Kandy"


@pytest.mark.asyncio
async def test_update_profile_rejects_taken_nic(async_client: AsyncClient, make_user, customer, auth_headers):
    await make_user("other@example.com", nic="111111111V")

    response = await async_client.patch(PROFILE, headers=auth_headers(customer), json={"nic": "111111111V"})
    assert response.status_code == 409
    assert response.json()["detail"] == "NIC already registered"


@pytest.mark.asyncio
async def test_profile_vehicle_block(async_client: AsyncClient, customer, auth_headers):
    """Test that the vehicle block creates, edits and clears the primary vehicle."""
    headers = auth_headers(customer)

    created = await async_client.patch(
        PROFILE,
        headers=headers,
        json={"vehicle": {"vehicle_number": "wp-cab-1", "type": "Car", "model": "Axio", "color": "Silver"}},
    )
    assert created.status_code == 200
    vehicles = created.json()["vehicles"]
    assert len(vehicles) == 1
    assert vehicles[0]["vehicle_number"] == "WP-CAB-1"
    assert vehicles[0]["model"] == "Axio"

    edited = await async_client.patch(
        PROFILE, headers=headers, json={"vehicle": {"vehicle_number": "WP-CAB-1", "color": "Black"}}
    )
    assert edited.status_code == 200
    vehicles = edited.json()["vehicles"]
    assert len(vehicles) == 1
    assert vehicles[0]["color"] == "Black"
    assert vehicles[0]["model"] is None

    cleared = await async_client.patch(
        PROFILE, headers=headers, json={"vehicle": {"vehicle_number": "", "type": "", "model": "", "color": ""}}
    )
    assert cleared.status_code == 200
    assert cleared.json()["vehicles"] == []


@pytest.mark.asyncio
async def test_profile_vehicle_requires_number(async_client: AsyncClient, customer, auth_headers):
    response = await async_client.patch(
        PROFILE, headers=auth_headers(customer), json={"vehicle": {"model": "Axio"}}
    )
    assert response.status_code == 400
    assert "Vehicle number is required" in response.json()["detail"]


@pytest.mark.asyncio
async def test_vehicle_crud(async_client: AsyncClient, customer, auth_headers):
    """Test adding, listing and deleting vehicles."""
    headers = auth_headers(customer)

    response = await async_client.post(
        f"{PROFILE}/vehicles", headers=headers, json={"vehicle_number": "kx-9999", "type": "Van"}
    )
    assert response.status_code == 201
    vehicle = response.json()
    assert vehicle["vehicle_number"] == "KX-9999"
    assert vehicle["user_id"] == str(customer.id)

    listed = await async_client.get(f"{PROFILE}/vehicles", headers=headers)
    assert [v["id"] for v in listed.json()] == [vehicle["id"]]

    deleted = await async_client.delete(f"{PROFILE}/vehicles/{vehicle['id']}", headers=headers)
    assert deleted.status_code == 204

    missing = await async_client.delete(f"{PROFILE}/vehicles/{vehicle['id']}", headers=headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_vehicle_owned_by_someone_else(async_client: AsyncClient, make_user, customer, auth_headers):
    other = await make_user("other@example.com")
    await async_client.post(f"{PROFILE}/vehicles", headers=auth_headers(other), json={"vehicle_number": "AB-1"})

    response = await async_client.post(
        f"{PROFILE}/vehicles", headers=auth_headers(customer), json={"vehicle_number": "ab-1"}
    )
    assert response.status_code == 409
