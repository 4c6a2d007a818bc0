"""Tests for customer booking endpoints."""

from datetime import date, datetime, timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from easypark.db.enums import PropertyStatus
from easypark.db.models import Booking
from easypark.services.users import add_vehicle

BOOKINGS = "/api/v1/bookings"
CARD = {"number": "4242 4242 4242 4242", "exp_month": 12, "exp_year": 2035, "cvc": "123"}


def booking_payload(prop, slots, day, start_time="10:00", duration=2, **extra):
    payload = {
        "property_id": str(prop.id),
        "slot_ids": [str(slot.id) for slot in slots],
        "date": day,
        "start_time": start_time,
        "duration": duration,
    }
    payload.update(extra)
    return payload


@pytest.mark.asyncio
async def test_create_booking_with_advance(
    async_client: AsyncClient, db_session, customer, make_property, slots_of, auth_headers, booking_day
):
    """Test a partly prepaid booking stays pending with the balance due."""
    vehicle = await add_vehicle(db_session, customer, "cab-1234")
    await db_session.commit()
    prop = await make_property()
    slots = await slots_of(prop)

    response = await async_client.post(
        BOOKINGS,
        headers=auth_headers(customer),
        json=booking_payload(prop, [slots["A1"]], booking_day, advance_amount=200, card=CARD),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["booking_number"].startswith("BK-")
    assert data["duration_hours"] == 2
    assert data["total_amount"] == 600
    assert data["online_paid"] == 200
    assert data["cash_paid"] == 0
    assert data["balance_due"] == 400
    assert data["payment_status"] == "PARTIAL"
    assert data["vehicle_number"] == vehicle.vehicle_number
    assert data["parking_type"] == "NORMAL"
    assert [s["number"] for s in data["slots"]] == ["A1"]

    assert len(data["payments"]) == 1
    payment = data["payments"][0]
    assert payment["method"] == "CARD"
    assert payment["gateway_status"] == "COMPLETED"
    assert payment["card_last4"] == "4242"
    assert payment["card_brand"] == "VISA"
    assert payment["transaction_id"].startswith("txn_")

    assert [(h["old_status"], h["new_status"]) for h in data["status_history"]] == [(None, "PENDING")]


@pytest.mark.asyncio
async def test_full_advance_marks_booking_paid(
    async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day
):
    prop = await make_property(price_per_hour=250)
    slots = await slots_of(prop)

    response = await async_client.post(
        BOOKINGS,
        headers=auth_headers(customer),
        json=booking_payload(prop, [slots["A1"], slots["A2"]], booking_day, duration=1, advance_amount=500, card=CARD),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["total_amount"] == 500
    assert data["status"] == "PAID"
    assert data["payment_status"] == "PAID"
    transitions = {(h["old_status"], h["new_status"]) for h in data["status_history"]}
    assert transitions == {(None, "PENDING"), ("PENDING", "PAID")}


@pytest.mark.asyncio
async def test_daily_rate_for_long_bookings(
    async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day
):
    prop = await make_property(price_per_hour=300, price_per_day=2500)
    slots = await slots_of(prop)

    response = await async_client.post(
        BOOKINGS, headers=auth_headers(customer), json=booking_payload(prop, [slots["A1"]], booking_day, duration=30)
    )
    assert response.status_code == 201
    assert response.json()["total_amount"] == 5000


@pytest.mark.asyncio
async def test_car_wash_booking_spawns_wash_job(
    async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day
):
    prop = await make_property()
    slots = await slots_of(prop)

    response = await async_client.post(
        BOOKINGS,
        headers=auth_headers(customer),
        json=booking_payload(prop, [slots["A1"], slots["CW1"]], booking_day),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["parking_type"] == "CAR_WASH"
    assert [(job["slot_number"], job["status"]) for job in data["wash_jobs"]] == [("CW1", "PENDING")]


@pytest.mark.asyncio
async def test_overlapping_booking_conflicts(
    async_client: AsyncClient, customer, make_user, make_property, slots_of, auth_headers, booking_day
):
    """Test that a slot cannot be double-booked but back-to-back windows are fine."""
    other = await make_user("other@example.com")
    prop = await make_property()
    slots = await slots_of(prop)

    first = await async_client.post(
        BOOKINGS, headers=auth_headers(customer), json=booking_payload(prop, [slots["A1"]], booking_day)
    )
    assert first.status_code == 201

    clash = await async_client.post(
        BOOKINGS,
        headers=auth_headers(other),
        json=booking_payload(prop, [slots["A2"], slots["A1"]], booking_day, start_time="11:00"),
    )
    assert clash.status_code == 409
    assert clash.json()["detail"] == "Selected slot(s) are already booked for that time"

    adjacent = await async_client.post(
        BOOKINGS,
        headers=auth_headers(other),
        json=booking_payload(prop, [slots["A1"]], booking_day, start_time="12:00"),
    )
    assert adjacent.status_code == 201

    mine = await async_client.get(BOOKINGS, headers=auth_headers(other))
    assert len(mine.json()) == 1


@pytest.mark.asyncio
async def test_my_bookings_newest_first(
    async_client: AsyncClient, db_session, customer, make_property, slots_of, auth_headers, booking_day
):
    """Test the customer list follows booking creation, not the booked day."""
    prop = await make_property()
    slots = await slots_of(prop)
    headers = auth_headers(customer)
    later_day = (date.fromisoformat(booking_day) + timedelta(days=3)).isoformat()

    older = await async_client.post(BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], later_day))
    await db_session.execute(
        update(Booking).where(Booking.id == UUID(older.json()["id"])).values(created_at=datetime(2020, 1, 1))
    )
    await db_session.commit()
    newer = await async_client.post(BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A2"]], booking_day))

    response = await async_client.get(BOOKINGS, headers=headers)
    assert [row["id"] for row in response.json()] == [newer.json()["id"], older.json()["id"]]


@pytest.mark.asyncio
async def test_booking_validation_errors(
    async_client: AsyncClient, db_session, customer, make_property, slots_of, auth_headers, booking_day
):
    prop = await make_property()
    elsewhere = await make_property(name="Elsewhere")
    closed = await make_property(name="Closed", status=PropertyStatus.NOT_ACTIVATED)
    slots = await slots_of(prop)
    foreign = await slots_of(elsewhere)
    closed_slots = await slots_of(closed)
    slots["A3"].is_active = False
    await db_session.commit()
    headers = auth_headers(customer)
    yesterday = (date.today() - timedelta(days=1)).isoformat()

    past = await async_client.post(BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], yesterday))
    assert past.status_code == 400
    assert past.json()["detail"] == "Booking start time cannot be in the past"

    wrong_property = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [foreign["A1"]], booking_day)
    )
    assert wrong_property.status_code == 400

    maintenance = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A3"]], booking_day)
    )
    assert maintenance.status_code == 400
    assert "maintenance" in maintenance.json()["detail"]

    not_activated = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(closed, [closed_slots["A1"]], booking_day)
    )
    assert not_activated.status_code == 400
    assert not_activated.json()["detail"] == "Cannot create booking for a non-activated property"

    bad_time = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], booking_day, start_time="teatime")
    )
    assert bad_time.status_code == 400
    assert bad_time.json()["detail"] == "Invalid start time"

    duplicate_slots = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"], slots["A1"]], booking_day)
    )
    assert duplicate_slots.status_code == 422

    too_much = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], booking_day, advance_amount=601)
    )
    assert too_much.status_code == 400
    assert too_much.json()["detail"] == "Advance amount cannot exceed the booking total"

    assert (await async_client.get(BOOKINGS, headers=headers)).json() == []


@pytest.mark.asyncio
async def test_declined_card_creates_nothing(
    async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day
):
    """Test that a failed advance charge leaves no booking behind."""
    prop = await make_property()
    slots = await slots_of(prop)
    headers = auth_headers(customer)
    bad_card = dict(CARD, number="4242424242424241")

    response = await async_client.post(
        BOOKINGS,
        headers=headers,
        json=booking_payload(prop, [slots["A1"]], booking_day, advance_amount=100, card=bad_card),
    )
    assert response.status_code == 402
    assert (await async_client.get(BOOKINGS, headers=headers)).json() == []


@pytest.mark.asyncio
async def test_vehicle_must_belong_to_customer(
    async_client: AsyncClient, db_session, customer, make_user, make_property, slots_of, auth_headers, booking_day
):
    other = await make_user("other@example.com")
    vehicle = await add_vehicle(db_session, other, "ZZ-9")
    await db_session.commit()
    prop = await make_property()
    slots = await slots_of(prop)

    response = await async_client.post(
        BOOKINGS,
        headers=auth_headers(customer),
        json=booking_payload(prop, [slots["A1"]], booking_day, vehicle_id=str(vehicle.id)),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_bookings_are_private(
    async_client: AsyncClient, customer, make_user, make_property, slots_of, auth_headers, booking_day
):
    other = await make_user("other@example.com")
    prop = await make_property()
    slots = await slots_of(prop)
    created = await async_client.post(
        BOOKINGS, headers=auth_headers(customer), json=booking_payload(prop, [slots["A1"]], booking_day)
    )
    booking_id = created.json()["id"]

    own = await async_client.get(f"{BOOKINGS}/{booking_id}", headers=auth_headers(customer))
    assert own.status_code == 200

    response = await async_client.get(f"{BOOKINGS}/{booking_id}", headers=auth_headers(other))
    assert response.status_code == 404
    assert (await async_client.get(BOOKINGS, headers=auth_headers(other))).json() == []


@pytest.mark.asyncio
async def test_cancel_booking_frees_slot(
    async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day
):
    """Test cancelling a booking and rebooking its slot."""
    prop = await make_property()
    slots = await slots_of(prop)
    headers = auth_headers(customer)
    created = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], booking_day)
    )
    booking_id = created.json()["id"]

    cancelled = await async_client.post(f"{BOOKINGS}/{booking_id}/cancel", headers=headers)
    assert cancelled.status_code == 200
    data = cancelled.json()
    assert data["status"] == "CANCELLED"
    history = {(h["new_status"], h["note"]) for h in data["status_history"]}
    assert ("CANCELLED", "Cancelled by customer") in history

    again = await async_client.post(f"{BOOKINGS}/{booking_id}/cancel", headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Booking is already cancelled"

    rebooked = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], booking_day)
    )
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_pay_balance(async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day):
    """Test paying the remaining balance settles the booking."""
    prop = await make_property()
    slots = await slots_of(prop)
    headers = auth_headers(customer)
    created = await async_client.post(
        BOOKINGS,
        headers=headers,
        json=booking_payload(prop, [slots["A1"]], booking_day, advance_amount=100, card=CARD),
    )
    booking_id = created.json()["id"]
    url = f"{BOOKINGS}/{booking_id}/payments"

    too_much = await async_client.post(url, headers=headers, json={"amount": 501, "card": CARD})
    assert too_much.status_code == 400
    assert too_much.json()["detail"] == "Payment amount exceeds balance due"

    partial = await async_client.post(url, headers=headers, json={"amount": 200, "card": CARD})
    assert partial.status_code == 200
    assert partial.json()["status"] == "PENDING"
    assert partial.json()["balance_due"] == 300

    rest = await async_client.post(url, headers=headers, json={"amount": 300, "card": CARD})
    assert rest.status_code == 200
    data = rest.json()
    assert data["status"] == "PAID"
    assert data["online_paid"] == 600
    assert data["balance_due"] == 0
    assert len(data["payments"]) == 3

    nothing_left = await async_client.post(url, headers=headers, json={"amount": 1, "card": CARD})
    assert nothing_left.status_code == 400


@pytest.mark.asyncio
async def test_cannot_pay_cancelled_booking(
    async_client: AsyncClient, customer, make_property, slots_of, auth_headers, booking_day
):
    prop = await make_property()
    slots = await slots_of(prop)
    headers = auth_headers(customer)
    created = await async_client.post(
        BOOKINGS, headers=headers, json=booking_payload(prop, [slots["A1"]], booking_day)
    )
    booking_id = created.json()["id"]
    await async_client.post(f"{BOOKINGS}/{booking_id}/cancel", headers=headers)

    response = await async_client.post(
        f"{BOOKINGS}/{booking_id}/payments", headers=headers, json={"amount": 100, "card": CARD}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot collect payment for a cancelled booking"


@pytest.mark.asyncio
async def test_bookings_require_authentication(async_client: AsyncClient, db_session):
    response = await async_client.get(BOOKINGS)
    assert response.status_code == 401
