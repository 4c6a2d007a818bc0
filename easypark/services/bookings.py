"""Booking creation, cancellation, lookup and list payloads."""

import logging
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from easypark.db.enums import BookingStatus, GatewayStatus, PaymentMethod, SlotType, WashStatus
from easypark.db.models import (
    Booking,
    BookingSlot,
    BookingStatusHistory,
    CounterTransaction,
    ParkingSlot,
    Property,
    User,
    Vehicle,
    WashJob,
)
from easypark.exceptions import (
    BookingConflict,
    InvalidBookingState,
    InvalidBookingTime,
    PaymentRejected,
    PropertyNotBookable,
    SlotUnavailable,
)
from easypark.services.availability import find_conflicting_booking, parse_time_of_day
from easypark.services.gateway import charge_card, new_transaction_id
from easypark.services.payments import (
    COUNTER_CARD_PROVIDER,
    COUNTER_CASH_PROVIDER,
    change_booking_status,
    record_payment,
    refresh_payment_summary,
    settle_if_paid,
)
from easypark.services.pricing import (
    booking_total,
    collection_status,
    duration_hours,
    parking_type_for,
    parking_type_label,
    slot_zone,
)

logger = logging.getLogger(__name__)

BOOKING_DETAIL_OPTIONS = (
    selectinload(Booking.property),
    selectinload(Booking.customer),
    selectinload(Booking.vehicle),
    selectinload(Booking.booking_slots).selectinload(BookingSlot.slot),
    selectinload(Booking.booking_slots).selectinload(BookingSlot.wash_job),
    selectinload(Booking.payments),
    selectinload(Booking.payment_summary),
    selectinload(Booking.status_history),
    selectinload(Booking.counter_transactions).selectinload(CounterTransaction.counter_user),
)


async def load_booking(db: AsyncSession, booking_id: UUID, *criteria) -> Optional[Booking]:
    """Booking with every relationship needed by detail payloads, or None."""
    result = await db.execute(
        select(Booking)
        .options(*BOOKING_DETAIL_OPTIONS)
        .where(Booking.id == booking_id, *criteria)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _time_bound(value: Optional[str]) -> Optional[time]:
    if not value:
        return None
    try:
        return parse_time_of_day(value)
    except ValueError:
        return None


async def list_bookings(
    db: AsyncSession,
    property_ids: Optional[Iterable[UUID]] = None,
    property_id: Optional[str] = None,
    customer_id: Optional[UUID] = None,
    day=None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    newest_created: bool = False,
) -> List[Booking]:
    """Bookings matching the staff list filters, newest start first.

    ``property_ids`` scopes the query (land owners); ``property_id`` is the
    user-selected filter where "all" means no filter. ``newest_created``
    orders by creation time instead, as customers see their own list.
    """
    query = select(Booking).options(*BOOKING_DETAIL_OPTIONS)

    if property_ids is not None:
        query = query.where(Booking.property_id.in_(list(property_ids)))
    if property_id and property_id != "all":
        try:
            query = query.where(Booking.property_id == UUID(str(property_id)))
        except ValueError:
            return []
    if customer_id is not None:
        query = query.where(Booking.customer_id == customer_id)
    if status:
        normalized = status.strip().upper()
        if normalized in BookingStatus.__members__:
            query = query.where(Booking.status == normalized)
    if day is not None:
        day_start = datetime.combine(day, time.min)
        query = query.where(
            Booking.start_time >= day_start,
            Booking.start_time < day_start + timedelta(days=1),
        )
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = (
            query.join(User, Booking.customer_id == User.id)
            .outerjoin(Vehicle, Booking.vehicle_id == Vehicle.id)
            .where(
                or_(
                    User.full_name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.phone.ilike(pattern),
                    Vehicle.vehicle_number.ilike(pattern),
                )
            )
        )

    if newest_created:
        query = query.order_by(Booking.created_at.desc(), Booking.start_time.desc())
    else:
        query = query.order_by(Booking.start_time.desc(), Booking.created_at.desc())
    result = await db.execute(query.execution_options(populate_existing=True))
    bookings = list(result.scalars().unique().all())

    lower = _time_bound(start_time)
    upper = _time_bound(end_time)
    if lower is None and upper is None:
        return bookings
    return [
        booking
        for booking in bookings
        if (lower is None or booking.start_time.time() >= lower)
        and (upper is None or booking.end_time.time() <= upper)
    ]


async def validate_booking_request(
    db: AsyncSession,
    prop: Property,
    slot_ids: List[UUID],
    start: datetime,
    end: datetime,
    reject_past: bool = True,
    now: Optional[datetime] = None,
    exclude_booking_id: Optional[UUID] = None,
) -> List[ParkingSlot]:
    """Check slots, property state, start time and overlaps; return the slots."""
    slot_ids = list(dict.fromkeys(slot_ids))
    if not slot_ids:
        raise SlotUnavailable("At least one slot must be selected")
    result = await db.execute(
        select(ParkingSlot)
        .where(ParkingSlot.id.in_(slot_ids), ParkingSlot.property_id == prop.id)
        .order_by(ParkingSlot.slot_number)
    )
    slots = list(result.scalars().all())
    if len(slots) != len(slot_ids):
        raise SlotUnavailable()
    if any(not slot.is_active for slot in slots):
        raise SlotUnavailable("One or more selected slots are in maintenance mode")
    if not prop.is_activated:
        raise PropertyNotBookable()
    if end <= start:
        raise InvalidBookingTime("Booking end time must be after its start time")
    if reject_past and start < (now or datetime.now()):
        raise InvalidBookingTime()
    conflict = await find_conflicting_booking(db, slot_ids, start, end, exclude_booking_id)
    if conflict is not None:
        raise BookingConflict()
    return slots


async def book_slots(
    db: AsyncSession,
    customer_id: UUID,
    prop: Property,
    slot_ids: List[UUID],
    start: datetime,
    end: datetime,
    created_by: Optional[UUID] = None,
    vehicle_id: Optional[UUID] = None,
    advance_amount=0,
    advance_method: PaymentMethod = PaymentMethod.CARD,
    card=None,
    card_terminal: bool = False,
    reject_past: bool = True,
    note: str = "Booking created",
    settle_note: str = "Fully paid during booking creation",
) -> Booking:
    """Validate, charge any advance, then write the booking and its dependants.

    Nothing is written until validation and the card charge succeed. With
    ``card_terminal`` a card advance was taken on the counter terminal, so it
    is recorded without going through the gateway.
    """
    slots = await validate_booking_request(db, prop, slot_ids, start, end, reject_past)

    advance = Decimal(str(advance_amount or 0))
    total = booking_total(prop.price_per_hour, prop.price_per_day, duration_hours(start, end), len(slots))
    if advance < 0:
        raise PaymentRejected("Advance amount must be a non-negative number")
    if advance > total:
        raise PaymentRejected("Advance amount cannot exceed the booking total")
    charge = None
    if advance > 0 and advance_method == PaymentMethod.CARD and not card_terminal:
        charge = await charge_card(advance, card)

    parking_type = parking_type_for(slot.slot_type for slot in slots)
    booking = Booking(
        customer_id=customer_id,
        property_id=prop.id,
        vehicle_id=vehicle_id,
        start_time=start,
        end_time=end,
        status=BookingStatus.PENDING.value,
        parking_type=parking_type,
        booking_type=parking_type,
        created_by=created_by,
    )
    db.add(booking)
    await db.flush()
    await _record_initial_status(db, booking, created_by, note)

    for slot in slots:
        booking_slot = BookingSlot(booking_id=booking.id, slot_id=slot.id)
        if slot.slot_type == SlotType.CAR_WASH.value:
            booking_slot.wash_job = WashJob(status=WashStatus.PENDING.value)
        db.add(booking_slot)
    await db.flush()

    summary = await refresh_payment_summary(db, booking)
    if advance > 0:
        provider, transaction_id = None, None
        if advance_method == PaymentMethod.CASH:
            provider = COUNTER_CASH_PROVIDER
        elif card_terminal:
            provider, transaction_id = COUNTER_CARD_PROVIDER, new_transaction_id("ctr_txn")
        await record_payment(
            db,
            booking,
            advance,
            advance_method,
            created_by=created_by,
            charge=charge,
            transaction_id=transaction_id,
            provider=provider,
            currency=summary.currency,
        )
        summary = await refresh_payment_summary(db, booking)
        await settle_if_paid(db, booking, summary, created_by, settle_note)

    logger.info(
        "Booking %s created for customer %s on slots %s",
        booking.id,
        customer_id,
        ", ".join(slot.slot_number for slot in slots),
    )
    return booking


async def _record_initial_status(
    db: AsyncSession, booking: Booking, changed_by: Optional[UUID], note: str
) -> None:
    db.add(
        BookingStatusHistory(
            booking_id=booking.id,
            old_status=None,
            new_status=booking.status,
            changed_by=changed_by,
            note=note,
        )
    )
    await db.flush()


async def cancel_booking(
    db: AsyncSession,
    booking: Booking,
    changed_by: Optional[UUID] = None,
    note: str = "Cancelled",
) -> None:
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidBookingState("Booking is already cancelled")
    await change_booking_status(db, booking, BookingStatus.CANCELLED, changed_by, note)
    logger.info("Booking %s cancelled (%s)", booking.id, note)


def amounts(booking: Booking) -> dict:
    """Payment totals for a booking with its summary loaded."""
    summary = booking.payment_summary
    total = float(summary.total_amount) if summary else 0.0
    online = float(summary.online_paid) if summary else 0.0
    cash = float(summary.cash_paid) if summary else 0.0
    paid = online + cash
    balance = float(summary.balance_due) if summary else max(0.0, total - paid)
    return {
        "total_amount": total,
        "online_paid": online,
        "cash_paid": cash,
        "paid_amount": paid,
        "balance_due": max(0.0, balance),
        "currency": summary.currency if summary else "LKR",
        "payment_status": collection_status(total, paid),
    }


def payment_method_summary(online_paid: float, cash_paid: float) -> str:
    if online_paid > 0 and cash_paid > 0:
        return "CARD,CASH"
    if online_paid > 0:
        return "CARD"
    if cash_paid > 0:
        return "CASH"
    return "N/A"


def slot_refs(booking: Booking) -> List[dict]:
    slots = sorted(
        (booking_slot.slot for booking_slot in booking.booking_slots),
        key=lambda slot: slot.slot_number,
    )
    return [
        {
            "id": slot.id,
            "number": slot.slot_number,
            "zone": slot_zone(slot.slot_number),
            "type": slot.slot_type,
        }
        for slot in slots
    ]


def booking_summary_payload(booking: Booking) -> dict:
    """Customer-facing list entry."""
    prop = booking.property
    return {
        "id": booking.id,
        "booking_number": booking.booking_number,
        "property": {
            "id": prop.id,
            "name": prop.property_name,
            "address": prop.address,
        },
        "start_time": booking.start_time,
        "end_time": booking.end_time,
        "duration_hours": duration_hours(booking.start_time, booking.end_time),
        "status": booking.status,
        "parking_type": booking.parking_type,
        "booking_type": booking.booking_type,
        "slots": slot_refs(booking),
        "vehicle_number": booking.vehicle.vehicle_number if booking.vehicle else None,
        "created_at": booking.created_at,
        **amounts(booking),
    }


def booking_detail_payload(booking: Booking) -> dict:
    payload = booking_summary_payload(booking)
    payload["payments"] = [
        {
            "id": payment.id,
            "amount": float(payment.amount),
            "currency": payment.currency,
            "method": payment.method,
            "payment_status": payment.payment_status,
            "gateway_status": payment.gateway_status,
            "gateway_provider": payment.gateway_provider,
            "transaction_id": payment.transaction_id,
            "card_last4": payment.card_last4,
            "card_brand": payment.card_brand,
            "paid_at": payment.paid_at,
            "created_at": payment.created_at,
        }
        for payment in booking.payments
    ]
    payload["status_history"] = [
        {
            "old_status": entry.old_status,
            "new_status": entry.new_status,
            "changed_by": entry.changed_by,
            "note": entry.note,
            "changed_at": entry.changed_at,
        }
        for entry in booking.status_history
    ]
    payload["wash_jobs"] = [
        {
            "id": booking_slot.wash_job.id,
            "slot_number": booking_slot.slot.slot_number,
            "status": booking_slot.wash_job.status,
        }
        for booking_slot in booking.booking_slots
        if booking_slot.wash_job is not None
    ]
    return payload


def staff_booking_row(booking: Booking) -> dict:
    """Row used by counter, land owner and admin booking tables."""
    money = amounts(booking)
    slots = slot_refs(booking)
    first = slots[0] if slots else None
    latest = booking.counter_transactions[0] if booking.counter_transactions else None
    customer = booking.customer
    vehicle = booking.vehicle
    prop = booking.property
    return {
        "booking_id": booking.id,
        "booking_number": booking.booking_number,
        "property_id": prop.id,
        "property_name": prop.property_name,
        "property_address": prop.address,
        "start_time": booking.start_time,
        "end_time": booking.end_time,
        "slot_number": first["number"] if first else "N/A",
        "slot_zone": first["zone"] if first else "A",
        "customer_id": customer.id,
        "customer_name": customer.full_name,
        "customer_email": customer.email,
        "customer_phone": customer.phone,
        "vehicle_id": vehicle.id if vehicle else None,
        "vehicle_number": vehicle.vehicle_number if vehicle else "N/A",
        "vehicle_type": vehicle.type if vehicle else None,
        "status": booking.status,
        "duration": duration_hours(booking.start_time, booking.end_time),
        "booking_type": booking.booking_type,
        "payment_method": payment_method_summary(money["online_paid"], money["cash_paid"]),
        "all_slots": slots,
        "latest_counter_action": (
            {
                "action": latest.action,
                "note": latest.note,
                "created_at": latest.created_at,
                "counter_name": latest.counter_user.full_name if latest.counter_user else None,
            }
            if latest
            else None
        ),
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
        **money,
    }


def payment_details_payload(booking: Booking) -> dict:
    """Payment view used by the admin and land owner consoles."""
    money = amounts(booking)
    latest = booking.payments[0] if booking.payments else None
    customer = booking.customer
    prop = booking.property
    return {
        "payment_id": latest.id if latest else None,
        "booking_id": booking.id,
        "customer": {
            "id": customer.id,
            "full_name": customer.full_name,
            "email": customer.email,
        },
        "property": {
            "id": prop.id,
            "name": prop.property_name,
            "address": prop.address,
        },
        "total_amount": money["total_amount"],
        "online_paid": money["online_paid"],
        "cash_paid": money["cash_paid"],
        "balance_due": money["balance_due"],
        "currency": money["currency"],
        "payment_method": latest.method if latest else "N/A",
        "payment_gateway_status": latest.gateway_status if latest else GatewayStatus.PENDING.value,
        "payment_status": money["payment_status"],
        "transaction_id": latest.transaction_id if latest else None,
        "booking_date": booking.start_time,
        "check_in_time": booking.start_time,
        "check_out_time": booking.end_time,
        "hours_selected": duration_hours(booking.start_time, booking.end_time),
        "parking_type": parking_type_label(booking.parking_type),
        "booking_type": booking.booking_type,
        "booking_status": booking.status,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }
