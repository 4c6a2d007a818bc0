"""Tests for washer dashboard endpoints."""

import uuid

import pytest
from httpx import AsyncClient

from easypark.db.enums import RoleName

WASHER = "/api/v1/washer"


@pytest.fixture
def book_wash(async_client: AsyncClient, auth_headers, booking_day):
    """Book the car-wash slot for a customer and return the booking payload."""

    async def _book_wash(user, prop, slot, start_time="10:00", duration=2):
        response = await async_client.post(
            "/api/v1/bookings",
            headers=auth_headers(user),
            json={
                "property_id": str(prop.id),
                "slot_ids": [str(slot.id)],
                "date": booking_day,
                "start_time": start_time,
                "duration": duration,
            },
        )
        assert response.status_code == 201
        return response.json()

    return _book_wash


@pytest.mark.asyncio
async def test_list_jobs(async_client: AsyncClient, washer, customer, make_property, slots_of, book_wash, auth_headers):
    prop = await make_property()
    slots = await slots_of(prop)
    booking = await book_wash(customer, prop, slots["CW1"])

    response = await async_client.get(f"{WASHER}/jobs", headers=auth_headers(washer))
    assert response.status_code == 200
    jobs = response.json()
    assert len(jobs) == 1
    job = jobs[0]
    assert job["id"] == booking["wash_jobs"][0]["id"]
    assert job["booking_number"] == booking["booking_number"]
    assert job["status"] == "PENDING"
    assert job["slot_number"] == "CW1"
    assert job["customer"]["name"] == "Nimal Perera"
    assert job["vehicle"] == "N/A"
    assert job["service_type"] == "Car Wash"
    assert job["washer_id"] is None


@pytest.mark.asyncio
async def test_accept_job(
    async_client: AsyncClient, washer, make_user, customer, make_property, slots_of, book_wash, auth_headers
):
    """Test accepting assigns the job and hides it from other washers."""
    other_washer = await make_user("washer2@example.com", roles=(RoleName.WASHER,))
    prop = await make_property()
    slots = await slots_of(prop)
    booking = await book_wash(customer, prop, slots["CW1"])
    job_id = booking["wash_jobs"][0]["id"]

    response = await async_client.patch(f"{WASHER}/jobs/{job_id}/accept", headers=auth_headers(washer))
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ACCEPTED"
    assert data["washer_id"] == str(washer.id)
    assert data["accepted_at"] is not None

    again = await async_client.patch(f"{WASHER}/jobs/{job_id}/accept", headers=auth_headers(washer))
    assert again.status_code == 400
    assert again.json()["detail"] == "Only pending jobs can be accepted"

    hidden = await async_client.get(f"{WASHER}/jobs/{job_id}", headers=auth_headers(other_washer))
    assert hidden.status_code == 404
    assert (await async_client.get(f"{WASHER}/jobs", headers=auth_headers(other_washer))).json() == []


@pytest.mark.asyncio
async def test_complete_job_notifies_customer(
    async_client: AsyncClient, washer, customer, make_property, slots_of, book_wash, auth_headers
):
    prop = await make_property()
    slots = await slots_of(prop)
    booking = await book_wash(customer, prop, slots["CW1"])
    job_id = booking["wash_jobs"][0]["id"]
    headers = auth_headers(washer)

    early = await async_client.patch(f"{WASHER}/jobs/{job_id}/complete", headers=headers)
    assert early.status_code == 400
    assert early.json()["detail"] == "Only accepted jobs can be completed"

    await async_client.patch(f"{WASHER}/jobs/{job_id}/accept", headers=headers)
    response = await async_client.patch(f"{WASHER}/jobs/{job_id}/complete", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert response.json()["completed_at"] is not None

    notifications = await async_client.get("/api/v1/notifications", headers=auth_headers(customer))
    assert [item["title"] for item in notifications.json()["items"]] == ["Car Wash Completed"]


@pytest.mark.asyncio
async def test_cancel_job_cancels_booking(
    async_client: AsyncClient, washer, customer, make_property, slots_of, book_wash, auth_headers
):
    """Test cancelling a job cancels its booking and notifies the customer."""
    prop = await make_property()
    slots = await slots_of(prop)
    booking = await book_wash(customer, prop, slots["CW1"])
    job_id = booking["wash_jobs"][0]["id"]
    headers = auth_headers(washer)

    response = await async_client.patch(f"{WASHER}/jobs/{job_id}/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["notes"] == "Cancelled by washer."

    own = await async_client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_headers(customer))
    assert own.json()["status"] == "CANCELLED"

    notifications = await async_client.get("/api/v1/notifications", headers=auth_headers(customer))
    assert notifications.json()["items"][0]["title"] == "Car Wash Cancelled"

    again = await async_client.patch(f"{WASHER}/jobs/{job_id}/cancel", headers=headers)
    assert again.status_code == 400

    accept = await async_client.patch(f"{WASHER}/jobs/{job_id}/accept", headers=headers)
    assert accept.status_code == 400


@pytest.mark.asyncio
async def test_reschedule_job(
    async_client: AsyncClient,
    washer,
    customer,
    make_user,
    make_property,
    slots_of,
    book_wash,
    auth_headers,
    booking_day,
):
    other = await make_user("other@example.com")
    prop = await make_property()
    slots = await slots_of(prop)
    booking = await book_wash(customer, prop, slots["CW1"])
    await book_wash(other, prop, slots["CW1"], start_time="15:00", duration=1)
    job_id = booking["wash_jobs"][0]["id"]
    url = f"{WASHER}/jobs/{job_id}/reschedule"
    headers = auth_headers(washer)

    moved = await async_client.patch(url, headers=headers, json={"slot_time": f"{booking_day}T12:00:00"})
    assert moved.status_code == 200
    assert moved.json()["slot_time"] == f"{booking_day}T12:00:00"
    assert moved.json()["end_time"] == f"{booking_day}T14:00:00"

    clash = await async_client.patch(url, headers=headers, json={"slot_time": f"{booking_day}T14:00:00"})
    assert clash.status_code == 409

    past = await async_client.patch(url, headers=headers, json={"slot_time": "2020-01-01T10:00:00"})
    assert past.status_code == 400
    assert past.json()["detail"] == "Reschedule time must be in the future"


@pytest.mark.asyncio
async def test_reschedule_checks_every_booked_slot(
    async_client: AsyncClient,
    washer,
    customer,
    make_user,
    make_property,
    slots_of,
    book_wash,
    auth_headers,
    booking_day,
):
    """Test a parking slot booked alongside the wash bay blocks the move."""
    other = await make_user("other@example.com")
    prop = await make_property()
    slots = await slots_of(prop)
    created = await async_client.post(
        "/api/v1/bookings",
        headers=auth_headers(customer),
        json={
            "property_id": str(prop.id),
            "slot_ids": [str(slots["A1"].id), str(slots["CW1"].id)],
            "date": booking_day,
            "start_time": "10:00",
            "duration": 2,
        },
    )
    assert created.status_code == 201
    booking = created.json()
    await book_wash(other, prop, slots["A1"], start_time="14:00", duration=1)
    url = f"{WASHER}/jobs/{booking['wash_jobs'][0]['id']}/reschedule"

    clash = await async_client.patch(url, headers=auth_headers(washer), json={"slot_time": f"{booking_day}T13:00:00"})
    assert clash.status_code == 409
    assert clash.json()["detail"] == "Selected slot(s) are already booked for that time"

    unchanged = await async_client.get(f"/api/v1/bookings/{booking['id']}", headers=auth_headers(customer))
    assert unchanged.json()["start_time"] == f"{booking_day}T10:00:00"


@pytest.mark.asyncio
async def test_bulk_accept_and_complete(
    async_client: AsyncClient, washer, customer, make_property, slots_of, book_wash, auth_headers
):
    """Test bulk actions report per-job outcomes."""
    prop = await make_property(car_wash=2)
    slots = await slots_of(prop)
    first = await book_wash(customer, prop, slots["CW1"])
    second = await book_wash(customer, prop, slots["CW2"])
    ids = [first["wash_jobs"][0]["id"], second["wash_jobs"][0]["id"]]
    missing = str(uuid.uuid4())
    headers = auth_headers(washer)

    accepted = await async_client.post(
        f"{WASHER}/jobs/bulk", headers=headers, json={"job_ids": ids + [missing], "action": "accept"}
    )
    assert accepted.status_code == 200
    results = {result["job_id"]: result for result in accepted.json()}
    assert results[ids[0]]["success"] is True
    assert results[ids[1]]["success"] is True
    assert results[missing] == {"job_id": missing, "success": False, "error": "Job not found"}

    await async_client.patch(f"{WASHER}/jobs/{ids[1]}/complete", headers=headers)
    completed = await async_client.post(
        f"{WASHER}/jobs/bulk", headers=headers, json={"job_ids": ids, "action": "complete"}
    )
    results = {result["job_id"]: result for result in completed.json()}
    assert results[ids[0]]["success"] is True
    assert results[ids[1]]["error"] == "Only accepted jobs can be completed"

    invalid = await async_client.post(f"{WASHER}/jobs/bulk", headers=headers, json={"job_ids": ids, "action": "wax"})
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_filter_and_sort_jobs(
    async_client: AsyncClient, washer, customer, make_user, make_property, slots_of, book_wash, auth_headers
):
    other = await make_user("sunil@example.com", full_name="Sunil Silva")
    prop = await make_property(car_wash=2)
    slots = await slots_of(prop)
    mine = await book_wash(customer, prop, slots["CW1"], start_time="09:00")
    theirs = await book_wash(other, prop, slots["CW2"], start_time="13:00")
    headers = auth_headers(washer)
    await async_client.patch(f"{WASHER}/jobs/{theirs['wash_jobs'][0]['id']}/accept", headers=headers)

    latest = await async_client.get(f"{WASHER}/jobs", headers=headers, params={"sort_by": "latest"})
    assert [job["booking_id"] for job in latest.json()] == [theirs["id"], mine["id"]]

    pending = await async_client.get(f"{WASHER}/jobs", headers=headers, params={"status": "pending"})
    assert [job["booking_id"] for job in pending.json()] == [mine["id"]]

    everything = await async_client.get(f"{WASHER}/jobs", headers=headers, params={"status": "ALL"})
    assert len(everything.json()) == 2

    found = await async_client.get(f"{WASHER}/jobs", headers=headers, params={"search": "sunil"})
    assert [job["booking_id"] for job in found.json()] == [theirs["id"]]


@pytest.mark.asyncio
async def test_washer_stats_and_customers(
    async_client: AsyncClient, washer, customer, make_property, slots_of, book_wash, auth_headers, booking_day
):
    prop = await make_property(car_wash=2)
    slots = await slots_of(prop)
    accepted = await book_wash(customer, prop, slots["CW1"])
    await book_wash(customer, prop, slots["CW2"])
    headers = auth_headers(washer)
    await async_client.patch(f"{WASHER}/jobs/{accepted['wash_jobs'][0]['id']}/accept", headers=headers)

    stats = await async_client.get(f"{WASHER}/stats", headers=headers, params={"date": booking_day})
    assert stats.status_code == 200
    data = stats.json()
    assert data["date"] == booking_day
    assert data["today"] == {"total": 1, "pending": 0, "accepted": 1, "completed": 0, "cancelled": 0}
    assert data["all_time"]["total"] == 1
    assert data["total_customers"] == 1

    customers = await async_client.get(f"{WASHER}/customers", headers=headers)
    assert customers.status_code == 200
    entry = customers.json()[0]
    assert entry["name"] == "Nimal Perera"
    assert entry["total_jobs"] == 2
    assert entry["completed_jobs"] == 0


@pytest.mark.asyncio
async def test_washer_endpoints_require_role(async_client: AsyncClient, customer, land_owner, auth_headers):
    for user in (customer, land_owner):
        response = await async_client.get(f"{WASHER}/jobs", headers=auth_headers(user))
        assert response.status_code == 403
