"""Property and slot management for admins and land owners."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import get_db_session, require_manager
from easypark.db.enums import PropertyStatus, RoleName
from easypark.db.models import ParkingSlot, Property, User
from easypark.schemas.parking_slot import (
    ParkingSlotCreate,
    ParkingSlotResponse,
    ParkingSlotUpdate,
    SlotBoardEntry,
)
from easypark.schemas.property import PropertyCreate, PropertyUpdate, PropertyWithSlots
from easypark.services.availability import slot_status_board
from easypark.services.properties import (
    add_slots,
    change_slot_type,
    delete_slot,
    existing_slot_numbers,
    initial_slot_layout,
    next_numbers_in_zone,
    recompute_slot_counters,
    slot_breakdown,
)
from easypark.services.roles import effective_roles

logger = logging.getLogger(__name__)

router = APIRouter()

MONEY_FIELDS = ("price_per_hour", "price_per_day")


def is_admin(user: User) -> bool:
    return RoleName.ADMIN in effective_roles(user)


def owned_by(query, user: User):
    """Land owners only reach their own properties."""
    if is_admin(user):
        return query
    return query.where(Property.owner_id == user.id)


def _money(data: dict) -> dict:
    for field in MONEY_FIELDS:
        if data.get(field) is not None:
            data[field] = Decimal(str(data[field]))
    return data


async def get_managed_property(db: AsyncSession, property_id: UUID, user: User) -> Property:
    result = await db.execute(owned_by(select(Property).where(Property.id == property_id), user))
    prop = result.scalar_one_or_none()

    if not prop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Property with id {property_id} not found",
        )

    return prop


async def get_managed_slot(db: AsyncSession, slot_id: UUID, user: User) -> ParkingSlot:
    query = (
        select(ParkingSlot)
        .join(Property, ParkingSlot.property_id == Property.id)
        .where(ParkingSlot.id == slot_id)
    )
    result = await db.execute(owned_by(query, user))
    slot = result.scalar_one_or_none()

    if not slot:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Parking slot with id {slot_id} not found",
        )

    return slot


async def _with_breakdown(db: AsyncSession, prop: Property) -> PropertyWithSlots:
    breakdown = await slot_breakdown(db, [prop.id])
    return PropertyWithSlots.from_property(prop, breakdown[prop.id])


async def _check_owner(db: AsyncSession, owner_id: UUID) -> None:
    if await db.get(User, owner_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {owner_id} not found",
        )


@router.get("/properties", response_model=List[PropertyWithSlots])
async def list_managed_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """List properties the caller manages."""
    query = owned_by(select(Property), user).order_by(Property.created_at.desc())
    if status_filter is not None:
        query = query.where(Property.status == status_filter.value)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Property.property_name.ilike(pattern), Property.address.ilike(pattern)))

    result = await db.execute(query)
    properties = result.scalars().all()
    breakdown = await slot_breakdown(db, [prop.id for prop in properties])
    return [PropertyWithSlots.from_property(prop, breakdown[prop.id]) for prop in properties]


@router.post("/properties", response_model=PropertyWithSlots, status_code=status.HTTP_201_CREATED)
async def create_property(
    data: PropertyCreate,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a property and its initial slot layout."""
    if is_admin(user):
        owner_id = data.owner_id
        if owner_id is not None:
            await _check_owner(db, owner_id)
    else:
        owner_id = user.id

    values = _money(data.model_dump(exclude={"owner_id", "slots"}))
    values["status"] = data.status.value
    prop = Property(
        **values,
        owner_id=owner_id,
        total_slots=0,
        total_normal_slots=0,
        total_ev_slots=0,
        total_car_wash_slots=0,
    )
    db.add(prop)
    await db.flush()

    layout = initial_slot_layout((config.type.value, config.count) for config in data.slots)
    if layout:
        await add_slots(db, prop, layout)
    await db.commit()
    logger.info("Property %s created by %s with %d slots", prop.id, user.id, len(layout))
    return await _with_breakdown(db, prop)


@router.get("/properties/{property_id}", response_model=PropertyWithSlots)
async def get_managed(
    property_id: UUID,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    prop = await get_managed_property(db, property_id, user)
    return await _with_breakdown(db, prop)


@router.patch("/properties/{property_id}", response_model=PropertyWithSlots)
async def update_property(
    property_id: UUID,
    data: PropertyUpdate,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Update a property; only admins may reassign the owner."""
    prop = await get_managed_property(db, property_id, user)

    update_data = _money(data.model_dump(exclude_unset=True))
    if "owner_id" in update_data:
        if not is_admin(user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can change the property owner",
            )
        if update_data["owner_id"] is not None:
            await _check_owner(db, update_data["owner_id"])
    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value
    for field in ("property_name", "address", "currency", "price_per_hour", "status"):
        if field in update_data and update_data[field] is None:
            update_data.pop(field)

    for field, value in update_data.items():
        setattr(prop, field, value)

    await db.commit()
    await db.refresh(prop)
    return await _with_breakdown(db, prop)


@router.delete("/properties/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_property(
    property_id: UUID,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a property with its slots and bookings."""
    prop = await get_managed_property(db, property_id, user)
    await db.delete(prop)
    await db.commit()
    logger.info("Property %s deleted by %s", property_id, user.id)


@router.post(
    "/properties/{property_id}/slots",
    response_model=List[ParkingSlotResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_slots(
    property_id: UUID,
    data: ParkingSlotCreate,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Add a single numbered slot, or a batch continuing a zone's numbering."""
    prop = await get_managed_property(db, property_id, user)
    existing = await existing_slot_numbers(db, prop)

    if data.slot_number is not None:
        number = data.slot_number.strip().upper()
        if number in {value.upper() for value in existing}:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Slot {number} already exists in this property",
            )
        numbers = [number]
    else:
        numbers = next_numbers_in_zone(existing, data.zone, data.count)

    slots = await add_slots(db, prop, [(number, data.slot_type.value) for number in numbers])
    await db.commit()
    return slots


@router.get("/properties/{property_id}/slot-board", response_model=List[SlotBoardEntry])
async def get_slot_board(
    property_id: UUID,
    at: Optional[datetime] = Query(None, description="Instant to inspect; defaults to now"),
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Status of every slot at an instant."""
    prop = await get_managed_property(db, property_id, user)
    return await slot_status_board(db, prop, at)


@router.patch("/slots/{slot_id}", response_model=ParkingSlotResponse)
async def update_slot(
    slot_id: UUID,
    data: ParkingSlotUpdate,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Change a slot's type or toggle maintenance mode."""
    slot = await get_managed_slot(db, slot_id, user)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if "slot_type" in update_data:
        await change_slot_type(db, slot, update_data.pop("slot_type").value)
    for field, value in update_data.items():
        setattr(slot, field, value)

    await db.flush()
    prop = await db.get(Property, slot.property_id)
    await recompute_slot_counters(db, prop)
    await db.commit()
    await db.refresh(slot)
    return slot


@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_slot(
    slot_id: UUID,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a slot that no live booking uses."""
    slot = await get_managed_slot(db, slot_id, user)
    prop = await db.get(Property, slot.property_id)
    await delete_slot(db, slot, prop)
    await db.commit()
