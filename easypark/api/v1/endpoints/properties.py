"""Public property endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import get_db_session
from easypark.db.enums import PropertyStatus
from easypark.db.models import Property
from easypark.schemas.parking_slot import ParkingSlotResponse
from easypark.schemas.property import AvailabilityResponse, PropertyWithSlots
from easypark.services.availability import parse_date, property_availability, property_slots
from easypark.services.properties import slot_breakdown

router = APIRouter()


async def get_activated_property(db: AsyncSession, property_id: UUID) -> Property:
    result = await db.execute(
        select(Property).where(
            Property.id == property_id,
            Property.status == PropertyStatus.ACTIVATED.value,
        )
    )
    prop = result.scalar_one_or_none()

    if not prop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Property with id {property_id} not found",
        )

    return prop


@router.get("", response_model=List[PropertyWithSlots])
async def list_properties(
    search: Optional[str] = Query(None, description="Match on name or address"),
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db_session),
):
    """List activated properties with their slot breakdown."""
    query = (
        select(Property)
        .where(Property.status == PropertyStatus.ACTIVATED.value)
        .order_by(Property.property_name)
        .offset(skip)
        .limit(limit)
    )
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Property.property_name.ilike(pattern), Property.address.ilike(pattern)))

    result = await db.execute(query)
    properties = result.scalars().all()
    breakdown = await slot_breakdown(db, [prop.id for prop in properties])
    return [PropertyWithSlots.from_property(prop, breakdown[prop.id]) for prop in properties]


@router.get("/{property_id}", response_model=PropertyWithSlots)
async def get_property(
    property_id: UUID,
    db: AsyncSession = Depends(get_db_session),
):
    """Get an activated property."""
    prop = await get_activated_property(db, property_id)
    breakdown = await slot_breakdown(db, [prop.id])
    return PropertyWithSlots.from_property(prop, breakdown[prop.id])


@router.get("/{property_id}/slots", response_model=List[ParkingSlotResponse])
async def list_property_slots(
    property_id: UUID,
    db: AsyncSession = Depends(get_db_session),
):
    """List the slots of an activated property ordered by number."""
    prop = await get_activated_property(db, property_id)
    return await property_slots(db, prop.id)


@router.get("/{property_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    property_id: UUID,
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    start_time: Optional[str] = Query(None, description="HH:MM or hh:MM AM/PM"),
    duration: float = Query(1, gt=0),
    db: AsyncSession = Depends(get_db_session),
):
    """Slot availability for a window plus the day's bookable start times."""
    if not date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date is required")
    try:
        day = parse_date(date)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date")

    prop = await get_activated_property(db, property_id)
    try:
        return await property_availability(db, prop, day, start_time, duration)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid start_time")
