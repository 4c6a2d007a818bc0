"""Tests for notification endpoints."""

import pytest
from httpx import AsyncClient

from easypark.services.notifications import notify

NOTIFICATIONS = "/api/v1/notifications"


@pytest.mark.asyncio
async def test_list_and_mark_read(async_client: AsyncClient, db_session, customer, auth_headers):
    """Test listing, filtering and marking notifications as read."""
    first = await notify(db_session, customer.id, "Booking Cancelled", "Your booking BK-000001 was cancelled.")
    await notify(db_session, customer.id, "Car Wash Completed", "Your car wash is done.")
    await db_session.commit()
    headers = auth_headers(customer)

    response = await async_client.get(NOTIFICATIONS, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["unread_count"] == 2
    assert {item["title"] for item in data["items"]} == {"Booking Cancelled", "Car Wash Completed"}

    marked = await async_client.patch(f"{NOTIFICATIONS}/{first.id}/read", headers=headers)
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True

    unread = await async_client.get(NOTIFICATIONS, headers=headers, params={"unread_only": True})
    assert [item["title"] for item in unread.json()["items"]] == ["Car Wash Completed"]
    assert unread.json()["unread_count"] == 1


@pytest.mark.asyncio
async def test_mark_all_read(async_client: AsyncClient, db_session, customer, make_user, auth_headers):
    other = await make_user("other@example.com")
    for index in range(3):
        await notify(db_session, customer.id, "Notice", f"Message {index}")
    await notify(db_session, other.id, "Notice", "Not yours")
    await db_session.commit()

    response = await async_client.post(f"{NOTIFICATIONS}/read-all", headers=auth_headers(customer))
    assert response.status_code == 200
    assert response.json()["message"] == "3 notifications marked as read"

    mine = await async_client.get(NOTIFICATIONS, headers=auth_headers(customer))
    assert mine.json()["unread_count"] == 0
    theirs = await async_client.get(NOTIFICATIONS, headers=auth_headers(other))
    assert theirs.json()["unread_count"] == 1


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(
    async_client: AsyncClient, db_session, customer, make_user, auth_headers
):
    other = await make_user("other@example.com")
    notification = await notify(db_session, other.id, "Notice", "Private")
    await db_session.commit()

    response = await async_client.patch(f"{NOTIFICATIONS}/{notification.id}/read", headers=auth_headers(customer))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_notifications_require_authentication(async_client: AsyncClient, db_session):
    response = await async_client.get(NOTIFICATIONS)
    assert response.status_code == 401
