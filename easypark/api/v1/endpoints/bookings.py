"""Customer booking endpoints."""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import get_current_user, get_db_session
from easypark.db.enums import PaymentMethod
from easypark.db.models import Booking, Property, User, Vehicle
from easypark.exceptions import InvalidBookingTime
from easypark.schemas.booking import (
    BookingCreate,
    BookingDetail,
    BookingPaymentCreate,
    BookingSummary,
)
from easypark.services.availability import build_end_time, parse_booking_start
from easypark.services.bookings import (
    book_slots,
    booking_detail_payload,
    booking_summary_payload,
    cancel_booking,
    list_bookings,
    load_booking,
)
from easypark.services.payments import pay_balance
from easypark.services.users import latest_vehicle

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_own_booking(db: AsyncSession, booking_id: UUID, user: User) -> Booking:
    booking = await load_booking(db, booking_id, Booking.customer_id == user.id)

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking with id {booking_id} not found",
        )

    return booking


@router.post("", response_model=BookingDetail, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Book one or more slots, optionally paying an advance by card."""
    prop = await db.get(Property, data.property_id)
    if not prop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Property with id {data.property_id} not found",
        )

    try:
        start = parse_booking_start(data.date, data.start_time)
    except ValueError:
        raise InvalidBookingTime("Invalid start time")
    end = build_end_time(start, data.duration)

    if data.vehicle_id is not None:
        result = await db.execute(
            select(Vehicle).where(Vehicle.id == data.vehicle_id, Vehicle.user_id == user.id)
        )
        vehicle = result.scalar_one_or_none()
        if not vehicle:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Vehicle with id {data.vehicle_id} not found",
            )
    else:
        vehicle = await latest_vehicle(db, user)

    booking = await book_slots(
        db,
        user.id,
        prop,
        data.slot_ids,
        start,
        end,
        created_by=user.id,
        vehicle_id=vehicle.id if vehicle else None,
        advance_amount=data.advance_amount,
        advance_method=PaymentMethod.CARD,
        card=data.card,
    )
    await db.commit()

    booking = await load_booking(db, booking.id)
    return booking_detail_payload(booking)


@router.get("", response_model=List[BookingSummary])
async def list_my_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List the caller's bookings, newest first."""
    bookings = await list_bookings(db, customer_id=user.id, newest_created=True)
    return [booking_summary_payload(booking) for booking in bookings]


@router.get("/{booking_id}", response_model=BookingDetail)
async def get_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Get one of the caller's bookings with payments and status history."""
    booking = await get_own_booking(db, booking_id, user)
    return booking_detail_payload(booking)


@router.post("/{booking_id}/cancel", response_model=BookingDetail)
async def cancel_my_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Cancel one of the caller's bookings."""
    booking = await get_own_booking(db, booking_id, user)
    await cancel_booking(db, booking, user.id, "Cancelled by customer")
    await db.commit()

    booking = await load_booking(db, booking.id)
    return booking_detail_payload(booking)


@router.post("/{booking_id}/payments", response_model=BookingDetail)
async def pay_booking(
    booking_id: UUID,
    data: BookingPaymentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Pay part or all of the outstanding balance by card."""
    booking = await get_own_booking(db, booking_id, user)
    await pay_balance(db, booking, data.amount, PaymentMethod.CARD, created_by=user.id, card=data.card)
    await db.commit()

    booking = await load_booking(db, booking.id)
    return booking_detail_payload(booking)
