"""Slot availability derived from overlapping bookings."""

import re
from collections import namedtuple
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from easypark.db.enums import BookingStatus
from easypark.db.models import Booking, BookingSlot, ParkingSlot, Property

# Statuses that hold a slot
BOOKABLE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.PAID.value)

PEAK_HOURS = {7, 8, 9, 10, 16, 17, 18, 19}
TIME_OPTIONS = [
    {
        "time": f"{hour:02d}:00",
        "label": time(hour).strftime("%I:%M %p"),
        "is_peak": hour in PEAK_HOURS,
    }
    for hour in range(6, 21)
]

SLOT_AVAILABLE = "AVAILABLE"
SLOT_OCCUPIED = "OCCUPIED"
SLOT_MAINTENANCE = "MAINTENANCE"

BookingWindow = namedtuple("BookingWindow", ["booking_id", "start_time", "end_time", "slot_ids"])

_MERIDIEM_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
_24H_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (24h) or ``hh:MM AM/PM``."""
    text = str(value or "").strip()
    match = _MERIDIEM_RE.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))
        if hour < 1 or hour > 12:
            raise ValueError(f"Invalid time: {value}")
        if hour == 12:
            hour = 0
        if match.group(3).upper() == "PM":
            hour += 12
        return time(hour, minute)
    match = _24H_RE.match(text)
    if not match:
        raise ValueError(f"Invalid time: {value}")
    # time() rejects out-of-range values with ValueError
    return time(int(match.group(1)), int(match.group(2)))


def parse_booking_start(day, start_time: str) -> datetime:
    return datetime.combine(parse_date(day), parse_time_of_day(start_time))


def build_end_time(start: datetime, duration_hours: float) -> datetime:
    return start + timedelta(hours=duration_hours)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def occupied_slot_ids(windows: Iterable[BookingWindow], start: datetime, end: datetime) -> Set[UUID]:
    occupied = set()
    for window in windows:
        if overlaps(window.start_time, window.end_time, start, end):
            occupied.update(window.slot_ids)
    return occupied


def rounded_now_minutes(now: datetime, interval_minutes: int = 60) -> int:
    """Minutes since midnight, rounded up to the next interval boundary."""
    total = now.hour * 60 + now.minute
    remainder = total % interval_minutes
    if remainder == 0:
        return total
    return total + (interval_minutes - remainder)


def build_time_options(
    day: date,
    duration: float,
    windows: List[BookingWindow],
    active_slot_ids: Set[UUID],
    now: datetime,
) -> List[dict]:
    today = now.date()
    is_past_date = day < today
    is_today = day == today
    now_minutes = rounded_now_minutes(now) if is_today else 0

    options = []
    for option in TIME_OPTIONS:
        option_start = parse_booking_start(day, option["time"])
        option_minutes = option_start.hour * 60 + option_start.minute
        occupied = occupied_slot_ids(windows, option_start, build_end_time(option_start, duration))
        has_free_slot = any(slot_id not in occupied for slot_id in active_slot_ids)
        options.append(
            {
                **option,
                "is_enabled": (
                    not is_past_date
                    and not (is_today and option_minutes < now_minutes)
                    and has_free_slot
                ),
            }
        )
    return options


async def load_booking_windows(
    db: AsyncSession,
    property_id: UUID,
    start: datetime,
    end: datetime,
) -> List[BookingWindow]:
    """Blocking bookings of a property that overlap ``[start, end)``."""
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.booking_slots))
        .where(
            Booking.property_id == property_id,
            Booking.status.in_(BOOKABLE_STATUSES),
            Booking.start_time < end,
            Booking.end_time > start,
        )
    )
    return [
        BookingWindow(
            booking.id,
            booking.start_time,
            booking.end_time,
            [booking_slot.slot_id for booking_slot in booking.booking_slots],
        )
        for booking in result.scalars().all()
    ]


async def find_conflicting_booking(
    db: AsyncSession,
    slot_ids: Iterable[UUID],
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[UUID] = None,
) -> Optional[Booking]:
    """First blocking booking holding any of ``slot_ids`` during ``[start, end)``."""
    slot_ids = list(slot_ids)
    if not slot_ids:
        return None
    query = (
        select(Booking)
        .join(BookingSlot, BookingSlot.booking_id == Booking.id)
        .where(
            BookingSlot.slot_id.in_(slot_ids),
            Booking.status.in_(BOOKABLE_STATUSES),
            Booking.start_time < end,
            Booking.end_time > start,
        )
        .limit(1)
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    result = await db.execute(query)
    return result.scalars().first()


async def property_slots(db: AsyncSession, property_id: UUID) -> List[ParkingSlot]:
    result = await db.execute(
        select(ParkingSlot)
        .where(ParkingSlot.property_id == property_id)
        .order_by(ParkingSlot.slot_number)
    )
    return list(result.scalars().all())


async def property_availability(
    db: AsyncSession,
    prop: Property,
    day: date,
    start_time: Optional[str] = None,
    duration: float = 1,
    now: Optional[datetime] = None,
) -> dict:
    """Per-slot status for a requested window plus the day's start-time grid.

    Raises ValueError when ``start_time`` cannot be parsed.
    """
    now = now or datetime.now()
    slots = await property_slots(db, prop.id)

    day_start = datetime.combine(day, time.min)
    # Options late in the day may run past midnight
    horizon = day_start + timedelta(days=1, hours=duration)
    windows = await load_booking_windows(db, prop.id, day_start, horizon)

    requested_start = requested_end = None
    occupied = set()
    if start_time:
        requested_start = parse_booking_start(day, start_time)
        requested_end = build_end_time(requested_start, duration)
        occupied = occupied_slot_ids(
            await load_booking_windows(db, prop.id, requested_start, requested_end),
            requested_start,
            requested_end,
        )

    slot_rows = []
    for slot in slots:
        is_available = slot.is_active and slot.id not in occupied
        if not slot.is_active:
            slot_status = SLOT_MAINTENANCE
        elif is_available:
            slot_status = SLOT_AVAILABLE
        else:
            slot_status = SLOT_OCCUPIED
        slot_rows.append(
            {
                "id": slot.id,
                "number": slot.slot_number,
                "type": slot.slot_type,
                "is_available": is_available,
                "status": slot_status,
            }
        )

    active_slot_ids = {slot.id for slot in slots if slot.is_active}
    return {
        "slots": slot_rows,
        "time_options": build_time_options(day, duration, windows, active_slot_ids, now),
        "requested_start": requested_start,
        "requested_end": requested_end,
    }


async def slot_status_board(db: AsyncSession, prop: Property, at: Optional[datetime] = None) -> List[dict]:
    """Status of every slot of ``prop`` at instant ``at``."""
    at = at or datetime.now()
    slots = await property_slots(db, prop.id)
    windows = await load_booking_windows(db, prop.id, at, at + timedelta(microseconds=1))

    holder = {}
    for window in windows:
        if window.start_time <= at < window.end_time:
            for slot_id in window.slot_ids:
                holder.setdefault(slot_id, window.booking_id)

    board = []
    for slot in slots:
        booking_id = holder.get(slot.id)
        if not slot.is_active:
            slot_status = SLOT_MAINTENANCE
        elif booking_id is not None:
            slot_status = SLOT_OCCUPIED
        else:
            slot_status = SLOT_AVAILABLE
        board.append(
            {
                "id": slot.id,
                "slot_number": slot.slot_number,
                "slot_type": slot.slot_type,
                "is_active": slot.is_active,
                "status": slot_status,
                "booking_id": booking_id,
            }
        )
    return board
