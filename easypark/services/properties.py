"""Property slot layout, numbering and counters."""

import logging
import re
import string
from typing import Iterable, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.db.enums import BookingStatus, SlotType
from easypark.db.models import Booking, BookingSlot, ParkingSlot, Property
from easypark.exceptions import SlotInUse

logger = logging.getLogger(__name__)

SLOTS_PER_ZONE = 9
TYPE_PREFIXES = {
    SlotType.EV.value: "EV",
    SlotType.CAR_WASH.value: "CW",
}


def zone_name(index: int) -> str:
    """Zone letters for the ``index``-th zone: A..Z, then AA, AB, ..."""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = string.ascii_uppercase[remainder] + letters
    return letters


def normal_slot_numbers(count: int) -> List[str]:
    """A1..A9, B1..B9, ... for ``count`` normal slots."""
    numbers = []
    for index in range(count):
        zone = zone_name(index // SLOTS_PER_ZONE)
        numbers.append(f"{zone}{index % SLOTS_PER_ZONE + 1}")
    return numbers


def initial_slot_layout(slot_configs: Iterable[Tuple[str, int]]) -> List[Tuple[str, str]]:
    """(slot_number, slot_type) pairs for a new property."""
    counts = {slot_type.value: 0 for slot_type in SlotType}
    for slot_type, count in slot_configs:
        counts[slot_type] += max(0, int(count))

    layout = [(number, SlotType.NORMAL.value) for number in normal_slot_numbers(counts[SlotType.NORMAL.value])]
    for slot_type, prefix in TYPE_PREFIXES.items():
        layout.extend((f"{prefix}{index}", slot_type) for index in range(1, counts[slot_type] + 1))
    return layout


def next_numbers_in_zone(existing: Iterable[str], zone: str, count: int) -> List[str]:
    """Continue numbering after the highest existing number in ``zone``."""
    zone = zone.strip().upper()
    pattern = re.compile(rf"^{re.escape(zone)}(\d+)$", re.IGNORECASE)
    highest = 0
    for number in existing:
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return [f"{zone}{highest + offset}" for offset in range(1, count + 1)]


async def recompute_slot_counters(db: AsyncSession, prop: Property) -> Property:
    result = await db.execute(
        select(ParkingSlot.slot_type, func.count())
        .where(ParkingSlot.property_id == prop.id)
        .group_by(ParkingSlot.slot_type)
    )
    counts = dict(result.all())
    prop.total_normal_slots = counts.get(SlotType.NORMAL.value, 0)
    prop.total_ev_slots = counts.get(SlotType.EV.value, 0)
    prop.total_car_wash_slots = counts.get(SlotType.CAR_WASH.value, 0)
    prop.total_slots = sum(counts.values())
    await db.flush()
    return prop


async def add_slots(db: AsyncSession, prop: Property, layout: Iterable[Tuple[str, str]]) -> List[ParkingSlot]:
    slots = [
        ParkingSlot(property_id=prop.id, slot_number=number, slot_type=slot_type, is_active=True)
        for number, slot_type in layout
    ]
    db.add_all(slots)
    await db.flush()
    await recompute_slot_counters(db, prop)
    logger.info("Added %d slots to property %s", len(slots), prop.id)
    return slots


async def existing_slot_numbers(db: AsyncSession, prop: Property) -> List[str]:
    result = await db.execute(select(ParkingSlot.slot_number).where(ParkingSlot.property_id == prop.id))
    return list(result.scalars().all())


async def slot_breakdown(db: AsyncSession, property_ids: List) -> dict:
    """Per-property slot counts keyed by property id."""
    if not property_ids:
        return {}
    result = await db.execute(
        select(ParkingSlot.property_id, ParkingSlot.slot_type, ParkingSlot.is_active, func.count())
        .where(ParkingSlot.property_id.in_(property_ids))
        .group_by(ParkingSlot.property_id, ParkingSlot.slot_type, ParkingSlot.is_active)
    )
    breakdown = {
        property_id: {"total": 0, "normal": 0, "ev": 0, "car_wash": 0, "active": 0}
        for property_id in property_ids
    }
    keys = {
        SlotType.NORMAL.value: "normal",
        SlotType.EV.value: "ev",
        SlotType.CAR_WASH.value: "car_wash",
    }
    for property_id, slot_type, is_active, count in result.all():
        entry = breakdown[property_id]
        entry["total"] += count
        entry[keys[slot_type]] += count
        if is_active:
            entry["active"] += count
    return breakdown


async def slot_in_use(db: AsyncSession, slot: ParkingSlot) -> bool:
    """True while a non-cancelled booking holds ``slot``."""
    in_use = await db.scalar(
        select(func.count())
        .select_from(BookingSlot)
        .join(Booking, BookingSlot.booking_id == Booking.id)
        .where(
            BookingSlot.slot_id == slot.id,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )
    return bool(in_use)


async def change_slot_type(db: AsyncSession, slot: ParkingSlot, slot_type: str) -> None:
    """Retype ``slot`` unless a non-cancelled booking holds it."""
    if slot.slot_type == slot_type:
        return
    if await slot_in_use(db, slot):
        raise SlotInUse("Slot type cannot change while bookings use the slot")
    slot.slot_type = slot_type


async def delete_slot(db: AsyncSession, slot: ParkingSlot, prop: Property) -> None:
    """Remove a slot unless a non-cancelled booking still uses it."""
    if await slot_in_use(db, slot):
        raise SlotInUse()
    await db.delete(slot)
    await db.flush()
    await recompute_slot_counters(db, prop)
    logger.info("Deleted slot %s from property %s", slot.slot_number, prop.id)
