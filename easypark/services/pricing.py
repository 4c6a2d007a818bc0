"""Booking price calculation and payment collection helpers."""

import math
import re
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from easypark.db.enums import SlotType

BASE_RATES = {
    "NORMAL": 300,
    "EV_SLOT": 400,
    "CAR_WASHING": 500,
}

PARKING_TYPE_LABELS = {
    SlotType.NORMAL.value: "Normal",
    SlotType.EV.value: "EV Slot",
    SlotType.CAR_WASH.value: "Car Washing",
}

# Tolerance when comparing money amounts
EPSILON = 0.0001


def normalize_booking_type(raw) -> str:
    text = str(raw or "").strip().upper().replace("-", "_").replace(" ", "_")
    if text in ("EV", "EV_SLOT", "EV_CHARGING"):
        return "EV_SLOT"
    if text in ("CAR_WASH", "CAR_WASHING", "CARWASH"):
        return "CAR_WASHING"
    return "NORMAL"


def calculate_booking_pricing(
    booking_type,
    hours,
    slot_count: int = 1,
    extras=0,
    base_rate_override=None,
) -> dict:
    """Price a booking from its type's base rate."""
    normalized = normalize_booking_type(booking_type)
    hours = max(1, hours or 0)
    slot_count = max(1, slot_count or 0)
    extras = max(0, extras or 0)
    base_rate = base_rate_override if base_rate_override is not None else BASE_RATES[normalized]
    subtotal = base_rate * hours * slot_count
    return {
        "booking_type": normalized,
        "base_rate": base_rate,
        "hours": hours,
        "slot_count": slot_count,
        "subtotal": subtotal,
        "extras": extras,
        "total": subtotal + extras,
    }


def duration_hours(start: datetime, end: datetime) -> int:
    """Whole hours between two instants, rounded up, never below one."""
    seconds = (end - start).total_seconds()
    return max(1, math.ceil(seconds / 3600))


def booking_total(price_per_hour, price_per_day, hours: int, slot_count: int) -> Decimal:
    slot_count = max(1, slot_count)
    if hours >= 24 and price_per_day is not None and Decimal(price_per_day) > 0:
        days = math.ceil(hours / 24)
        return Decimal(price_per_day) * days * slot_count
    return Decimal(price_per_hour or 0) * hours * slot_count


def collection_status(total, paid) -> str:
    total = float(total or 0)
    paid = float(paid or 0)
    if total <= 0 or paid <= EPSILON:
        return "UNPAID"
    if paid + EPSILON >= total:
        return "PAID"
    return "PARTIAL"


def clamp_online_paid(total, online):
    if online < 0:
        raise ValueError("Paid amount cannot be negative")
    if online > total + EPSILON:
        raise ValueError("Paid amount cannot exceed the booking total")
    return online


def parking_type_for(slot_types: Iterable[str]) -> str:
    slot_types = set(slot_types)
    if SlotType.CAR_WASH.value in slot_types:
        return SlotType.CAR_WASH.value
    if SlotType.EV.value in slot_types:
        return SlotType.EV.value
    return SlotType.NORMAL.value


def parking_type_label(parking_type: Optional[str]) -> str:
    return PARKING_TYPE_LABELS.get(parking_type or "", "Normal")


def slot_zone(slot_number: Optional[str]) -> str:
    match = re.match(r"^([A-Za-z]+)", slot_number or "")
    return match.group(1).upper() if match else "A"
