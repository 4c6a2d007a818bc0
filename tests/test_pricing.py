"""Tests for booking price calculation."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from easypark.services.pricing import (
    booking_total,
    calculate_booking_pricing,
    clamp_online_paid,
    collection_status,
    duration_hours,
    normalize_booking_type,
    parking_type_for,
    parking_type_label,
    slot_zone,
)


def test_duration_rounds_partial_hours_up():
    """Test that a started hour is billed as a full hour."""
    start = datetime(2030, 5, 1, 10, 0)
    assert duration_hours(start, start + timedelta(minutes=90)) == 2
    assert duration_hours(start, start + timedelta(minutes=1)) == 1
    assert duration_hours(start, start + timedelta(hours=3)) == 3


def test_duration_is_never_below_one_hour():
    start = datetime(2030, 5, 1, 10, 0)
    assert duration_hours(start, start) == 1


def test_hourly_total_scales_with_slots():
    """Test hourly pricing across several slots."""
    assert booking_total(300, None, 3, 2) == Decimal("1800")
    assert booking_total(Decimal("250.50"), None, 2, 1) == Decimal("501.00")


def test_daily_rate_applies_from_24_hours():
    """Test that bookings of a day or more use the per-day price."""
    assert booking_total(300, 2500, 24, 1) == Decimal("2500")
    assert booking_total(300, 2500, 30, 1) == Decimal("5000")
    assert booking_total(300, 2500, 48, 2) == Decimal("10000")


def test_daily_rate_ignored_when_unset_or_zero():
    assert booking_total(300, None, 30, 1) == Decimal("9000")
    assert booking_total(300, 0, 30, 1) == Decimal("9000")
    assert booking_total(300, 2500, 23, 1) == Decimal("6900")


def test_collection_status():
    """Test PAID / PARTIAL / UNPAID classification."""
    assert collection_status(1000, 0) == "UNPAID"
    assert collection_status(1000, 400) == "PARTIAL"
    assert collection_status(1000, 1000) == "PAID"
    assert collection_status(1000, 999.99995) == "PAID"
    assert collection_status(0, 0) == "UNPAID"


def test_clamp_online_paid():
    assert clamp_online_paid(1000, 500) == 500
    assert clamp_online_paid(1000, 1000) == 1000

    with pytest.raises(ValueError, match="negative"):
        clamp_online_paid(1000, -1)
    with pytest.raises(ValueError, match="exceed"):
        clamp_online_paid(1000, 1000.5)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ev", "EV_SLOT"),
        ("EV-Charging", "EV_SLOT"),
        ("Car Wash", "CAR_WASHING"),
        ("carwash", "CAR_WASHING"),
        ("normal", "NORMAL"),
        (None, "NORMAL"),
        ("valet", "NORMAL"),
    ],
)
def test_normalize_booking_type(raw, expected):
    assert normalize_booking_type(raw) == expected


def test_calculate_booking_pricing_uses_base_rates():
    """Test the standalone price quote."""
    quote = calculate_booking_pricing("EV", 3, slot_count=2, extras=150)

    assert quote["booking_type"] == "EV_SLOT"
    assert quote["base_rate"] == 400
    assert quote["subtotal"] == 2400
    assert quote["total"] == 2550


def test_calculate_booking_pricing_clamps_inputs():
    quote = calculate_booking_pricing("NORMAL", 0, slot_count=0, extras=-10, base_rate_override=100)

    assert quote["hours"] == 1
    assert quote["slot_count"] == 1
    assert quote["extras"] == 0
    assert quote["total"] == 100


def test_parking_type_prefers_car_wash_then_ev():
    assert parking_type_for(["NORMAL", "NORMAL"]) == "NORMAL"
    assert parking_type_for(["NORMAL", "EV"]) == "EV"
    assert parking_type_for(["EV", "CAR_WASH", "NORMAL"]) == "CAR_WASH"


def test_parking_type_label():
    assert parking_type_label("EV") == "EV Slot"
    assert parking_type_label("CAR_WASH") == "Car Washing"
    assert parking_type_label(None) == "Normal"


def test_slot_zone():
    assert slot_zone("B12") == "B"
    assert slot_zone("ev1") == "EV"
    assert slot_zone("12") == "A"
    assert slot_zone(None) == "A"
