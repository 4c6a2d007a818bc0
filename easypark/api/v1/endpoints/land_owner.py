"""Land owner console: bookings, payments and customers on owned properties."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import day_filter, get_db_session, require_land_owner
from easypark.db.enums import RoleName
from easypark.db.models import Booking, Property, User
from easypark.schemas.booking import (
    BookingPaymentDetails,
    BookingPaymentUpdate,
    BookingPaymentUpdateResponse,
    CustomerDetail,
    StaffBookingList,
)
from easypark.services.bookings import (
    list_bookings,
    load_booking,
    payment_details_payload,
    staff_booking_row,
)
from easypark.services.customers import customer_detail
from easypark.services.payments import apply_paid_target
from easypark.services.roles import effective_roles

router = APIRouter()


async def owned_property_ids(db: AsyncSession, user: User) -> Optional[List[UUID]]:
    """None for admins (no scoping), otherwise the ids of the caller's properties."""
    if RoleName.ADMIN in effective_roles(user):
        return None
    result = await db.execute(select(Property.id).where(Property.owner_id == user.id))
    return list(result.scalars().all())


async def get_scoped_booking(db: AsyncSession, booking_id: UUID, property_ids) -> Booking:
    criteria = [] if property_ids is None else [Booking.property_id.in_(property_ids)]
    booking = await load_booking(db, booking_id, *criteria)

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking with id {booking_id} not found",
        )

    return booking


@router.get("/bookings", response_model=StaffBookingList)
async def list_owner_bookings(
    property_id: Optional[str] = Query(None, description="Property id or 'all'"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    start_time: Optional[str] = Query(None),
    end_time: Optional[str] = Query(None),
    user: User = Depends(require_land_owner),
    db: AsyncSession = Depends(get_db_session),
):
    """Bookings on the caller's properties."""
    bookings = await list_bookings(
        db,
        property_ids=await owned_property_ids(db, user),
        property_id=property_id,
        day=day_filter(date),
        status=status_filter,
        search=search,
        start_time=start_time,
        end_time=end_time,
    )
    rows = [staff_booking_row(booking) for booking in bookings]
    return StaffBookingList(bookings=rows, total=len(rows))


@router.get("/bookings/{booking_id}/payment", response_model=BookingPaymentDetails)
async def get_booking_payment(
    booking_id: UUID,
    user: User = Depends(require_land_owner),
    db: AsyncSession = Depends(get_db_session),
):
    booking = await get_scoped_booking(db, booking_id, await owned_property_ids(db, user))
    return payment_details_payload(booking)


@router.post("/bookings/{booking_id}/payment", response_model=BookingPaymentUpdateResponse)
async def set_booking_payment(
    booking_id: UUID,
    data: BookingPaymentUpdate,
    user: User = Depends(require_land_owner),
    db: AsyncSession = Depends(get_db_session),
):
    """Record what has been paid so far on a booking at an owned property."""
    booking = await get_scoped_booking(db, booking_id, await owned_property_ids(db, user))
    await apply_paid_target(
        db,
        booking,
        data.online_paid,
        data.payment_method,
        changed_by=user.id,
        transaction_id=data.transaction_id,
        currency=data.currency,
        note="Payment updated by land owner",
    )
    await db.commit()

    booking = await load_booking(db, booking.id)
    return BookingPaymentUpdateResponse.from_details(payment_details_payload(booking))


@router.get("/customers/{customer_id}", response_model=CustomerDetail)
async def get_customer(
    customer_id: UUID,
    user: User = Depends(require_land_owner),
    db: AsyncSession = Depends(get_db_session),
):
    """Customer profile with their bookings on the caller's properties."""
    property_ids = await owned_property_ids(db, user)
    customer = await db.get(User, customer_id)
    detail = await customer_detail(db, customer, property_ids) if customer else None

    if detail is None or (property_ids is not None and not detail["bookings"]):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Customer with id {customer_id} not found",
        )

    return detail
