"""Front-desk endpoints for counter staff."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from easypark.api.deps import day_filter, get_db_session, require_counter
from easypark.db.enums import CounterAction
from easypark.db.models import CounterTransaction, Property, User
from easypark.exceptions import InvalidBookingTime
from easypark.schemas.booking import (
    CounterBookingCreate,
    CounterBookingCreated,
    CounterBookingUpdate,
    CounterBookingUpdated,
    CounterTransactionResponse,
    StaffBookingList,
)
from easypark.schemas.parking_slot import SlotBoardEntry
from easypark.services.availability import (
    build_end_time,
    parse_booking_start,
    slot_status_board,
)
from easypark.services.bookings import (
    amounts,
    book_slots,
    list_bookings,
    load_booking,
    staff_booking_row,
    validate_booking_request,
)
from easypark.services.counter import log_counter_action, update_counter_booking
from easypark.services.customers import resolve_or_create_customer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/bookings", response_model=StaffBookingList)
async def list_counter_bookings(
    property_id: Optional[str] = Query(None, description="Property id or 'all'"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    start_time: Optional[str] = Query(None, description="HH:MM lower bound"),
    end_time: Optional[str] = Query(None, description="HH:MM upper bound"),
    user: User = Depends(require_counter),
    db: AsyncSession = Depends(get_db_session),
):
    """Bookings across all properties with the counter filters."""
    bookings = await list_bookings(
        db,
        property_id=property_id,
        day=day_filter(date),
        status=status_filter,
        search=search,
        start_time=start_time,
        end_time=end_time,
    )
    rows = [staff_booking_row(booking) for booking in bookings]
    return StaffBookingList(bookings=rows, total=len(rows))


@router.post("/bookings", response_model=CounterBookingCreated, status_code=status.HTTP_201_CREATED)
async def create_walk_in_booking(
    data: CounterBookingCreate,
    user: User = Depends(require_counter),
    db: AsyncSession = Depends(get_db_session),
):
    """Book slots for a walk-in customer, creating the account when needed."""
    customer_data = data.customer
    if customer_data.customer_id is None and not (customer_data.full_name or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Customer name is required")
    if customer_data.customer_id is not None and await db.get(User, customer_data.customer_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer with id {customer_data.customer_id} not found",
        )

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

    # Nothing is written before the slots are known to be bookable
    slots = await validate_booking_request(db, prop, data.slot_ids, start, end, reject_past=False)

    customer, vehicle_id = await resolve_or_create_customer(db, customer_data)
    booking = await book_slots(
        db,
        customer.id,
        prop,
        data.slot_ids,
        start,
        end,
        created_by=user.id,
        vehicle_id=vehicle_id,
        advance_amount=data.advance_amount,
        advance_method=data.payment_method,
        card_terminal=True,
        reject_past=False,
        note="Walk-in booking created at counter",
        settle_note="Fully paid at counter",
    )
    note = (data.note or "").strip() or "Slots: " + ", ".join(slot.slot_number for slot in slots)
    await log_counter_action(db, user.id, booking, CounterAction.BOOKING_CREATED, note)
    await db.commit()

    booking = await load_booking(db, booking.id)
    money = amounts(booking)
    return CounterBookingCreated(
        booking_id=booking.id,
        booking_number=booking.booking_number,
        customer_id=customer.id,
        status=booking.status,
        total_amount=money["total_amount"],
        balance_due=money["balance_due"],
    )


@router.patch("/bookings/{booking_id}", response_model=CounterBookingUpdated)
async def update_booking(
    booking_id: UUID,
    data: CounterBookingUpdate,
    user: User = Depends(require_counter),
    db: AsyncSession = Depends(get_db_session),
):
    """Collect cash and/or change the status of a booking."""
    if data.status is None and not data.collect_cash_amount:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide a status or a positive cash amount to collect",
        )

    booking = await load_booking(db, booking_id)
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking with id {booking_id} not found",
        )

    await update_counter_booking(
        db,
        booking,
        user.id,
        requested=data.status,
        collect_cash_amount=data.collect_cash_amount,
        note=(data.note or "").strip() or None,
    )
    await db.commit()

    booking = await load_booking(db, booking.id)
    money = amounts(booking)
    return CounterBookingUpdated(
        booking_id=booking.id,
        status=booking.status,
        total_amount=money["total_amount"],
        online_paid=money["online_paid"],
        cash_paid=money["cash_paid"],
        balance_due=money["balance_due"],
    )


@router.get("/transactions", response_model=List[CounterTransactionResponse])
async def list_transactions(
    booking_id: Optional[UUID] = Query(None, description="Filter by booking ID"),
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(require_counter),
    db: AsyncSession = Depends(get_db_session),
):
    """Counter audit log, newest first."""
    query = (
        select(CounterTransaction)
        .options(
            selectinload(CounterTransaction.counter_user),
            selectinload(CounterTransaction.booking),
        )
        .order_by(CounterTransaction.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    if booking_id:
        query = query.where(CounterTransaction.booking_id == booking_id)

    result = await db.execute(query)
    return [
        CounterTransactionResponse(
            id=entry.id,
            booking_id=entry.booking_id,
            booking_number=entry.booking.booking_number,
            counter_user_id=entry.counter_user_id,
            counter_name=entry.counter_user.full_name if entry.counter_user else None,
            action=entry.action,
            note=entry.note,
            created_at=entry.created_at,
        )
        for entry in result.scalars().all()
    ]


@router.get("/properties/{property_id}/slot-board", response_model=List[SlotBoardEntry])
async def get_slot_board(
    property_id: UUID,
    at: Optional[datetime] = Query(None, description="Instant to inspect; defaults to now"),
    user: User = Depends(require_counter),
    db: AsyncSession = Depends(get_db_session),
):
    """Status of every slot of a property at an instant."""
    prop = await db.get(Property, property_id)
    if not prop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Property with id {property_id} not found",
        )
    return await slot_status_board(db, prop, at)
