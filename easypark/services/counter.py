"""Front-desk actions: audit log and booking updates."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from easypark.db.enums import BookingStatus, CounterAction, PaymentMethod
from easypark.db.models import Booking, CounterTransaction, PaymentSummary
from easypark.exceptions import BookingConflict
from easypark.services.availability import find_conflicting_booking
from easypark.services.notifications import notify
from easypark.services.payments import change_booking_status, pay_balance

logger = logging.getLogger(__name__)


async def log_counter_action(
    db: AsyncSession,
    counter_user_id: UUID,
    booking: Booking,
    action: CounterAction,
    note: Optional[str] = None,
) -> CounterTransaction:
    entry = CounterTransaction(
        counter_user_id=counter_user_id,
        booking_id=booking.id,
        action=action.value,
        note=note,
    )
    db.add(entry)
    await db.flush()
    logger.info("Counter action %s on booking %s by %s", action.value, booking.id, counter_user_id)
    return entry


def resolve_status(current: str, requested: Optional[BookingStatus], balance_due) -> BookingStatus:
    """Status after a counter update.

    CANCELLED and PENDING are applied as requested; PAID is applied when
    requested or when the balance is cleared; otherwise nothing changes.
    """
    if requested in (BookingStatus.CANCELLED, BookingStatus.PENDING):
        return requested
    if current == BookingStatus.CANCELLED.value:
        return BookingStatus.CANCELLED
    if requested == BookingStatus.PAID or balance_due <= 0:
        return BookingStatus.PAID
    return BookingStatus(current)


def default_note(new_status: BookingStatus, collect_cash_amount=None) -> str:
    if collect_cash_amount and collect_cash_amount > 0:
        return f"Collected cash payment: {float(collect_cash_amount):.2f}"
    return f"Status updated to {new_status.value}"


async def update_counter_booking(
    db: AsyncSession,
    booking: Booking,
    counter_user_id: UUID,
    requested: Optional[BookingStatus] = None,
    collect_cash_amount=None,
    note: Optional[str] = None,
) -> PaymentSummary:
    """Collect cash and/or change status, then log the update.

    Reopening a cancelled booking re-checks its slots, since they may have
    been booked by someone else in the meantime.
    """
    if collect_cash_amount:
        summary = await pay_balance(
            db,
            booking,
            collect_cash_amount,
            PaymentMethod.CASH,
            created_by=counter_user_id,
            settle=False,
        )
    else:
        summary = await db.get(PaymentSummary, booking.id)

    balance = summary.balance_due if summary is not None else 0
    new_status = resolve_status(booking.status, requested, balance)
    if booking.status == BookingStatus.CANCELLED.value and new_status != BookingStatus.CANCELLED:
        conflict = await find_conflicting_booking(
            db,
            [booking_slot.slot_id for booking_slot in booking.booking_slots],
            booking.start_time,
            booking.end_time,
            exclude_booking_id=booking.id,
        )
        if conflict is not None:
            raise BookingConflict()

    changed = await change_booking_status(
        db, booking, new_status, counter_user_id, note or "Updated at counter"
    )
    if changed and new_status == BookingStatus.CANCELLED:
        await notify(
            db,
            booking.customer_id,
            "Booking Cancelled",
            f"Your booking {booking.booking_number} was cancelled by our front desk.",
        )

    await log_counter_action(
        db,
        counter_user_id,
        booking,
        CounterAction.BOOKING_UPDATED,
        note or default_note(new_status, collect_cash_amount),
    )
    return summary
