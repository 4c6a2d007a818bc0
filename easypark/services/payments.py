"""Payment recording, summary refresh and booking status transitions."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.config import settings
from easypark.db.enums import BookingStatus, GatewayStatus, PaymentMethod, PaymentStatus
from easypark.db.models import Booking, BookingSlot, BookingStatusHistory, Payment, PaymentSummary, Property
from easypark.exceptions import InvalidBookingState, PaymentRejected
from easypark.services.gateway import ChargeResult, charge_card, new_transaction_id
from easypark.services.pricing import EPSILON, booking_total, clamp_online_paid, duration_hours

logger = logging.getLogger(__name__)

COUNTER_CASH_PROVIDER = "COUNTER_CASH"
COUNTER_CARD_PROVIDER = "COUNTER_CARD_TERMINAL"
MANUAL_PROVIDER = "MANUAL"


def _decimal(value) -> Decimal:
    return Decimal(str(value or 0))


async def refresh_payment_summary(db: AsyncSession, booking: Booking) -> PaymentSummary:
    """Recompute totals for ``booking`` and upsert its summary row."""
    prop = await db.get(Property, booking.property_id)
    slot_count = await db.scalar(
        select(func.count()).select_from(BookingSlot).where(BookingSlot.booking_id == booking.id)
    )
    hours = duration_hours(booking.start_time, booking.end_time)
    total = booking_total(
        prop.price_per_hour if prop else 0,
        prop.price_per_day if prop else None,
        hours,
        slot_count or 1,
    )

    paid_result = await db.execute(
        select(Payment.method, func.sum(Payment.amount))
        .where(
            Payment.booking_id == booking.id,
            Payment.payment_status == PaymentStatus.PAID.value,
        )
        .group_by(Payment.method)
    )
    paid_by_method = {method: _decimal(amount) for method, amount in paid_result.all()}
    online = paid_by_method.get(PaymentMethod.CARD.value, Decimal("0"))
    cash = paid_by_method.get(PaymentMethod.CASH.value, Decimal("0"))

    summary = await db.get(PaymentSummary, booking.id)
    if summary is None:
        summary = PaymentSummary(booking_id=booking.id)
        db.add(summary)
    summary.total_amount = total
    summary.online_paid = online
    summary.cash_paid = cash
    summary.balance_due = max(Decimal("0"), total - online - cash)
    summary.currency = (prop.currency if prop else None) or settings.DEFAULT_CURRENCY
    await db.flush()
    return summary


async def record_payment(
    db: AsyncSession,
    booking: Booking,
    amount,
    method: PaymentMethod,
    created_by: Optional[UUID] = None,
    charge: Optional[ChargeResult] = None,
    transaction_id: Optional[str] = None,
    provider: Optional[str] = None,
    currency: Optional[str] = None,
) -> Payment:
    """Insert a PAID payment row for ``booking``."""
    is_card = method == PaymentMethod.CARD
    payment = Payment(
        booking_id=booking.id,
        payer_id=booking.customer_id,
        amount=_decimal(amount),
        currency=currency or settings.DEFAULT_CURRENCY,
        method=method.value,
        payment_status=PaymentStatus.PAID.value,
        gateway_status=GatewayStatus.COMPLETED.value if is_card else GatewayStatus.PENDING.value,
        gateway_provider=charge.provider if charge else provider,
        transaction_id=charge.transaction_id if charge else transaction_id,
        card_last4=charge.card_last4 if charge else None,
        card_brand=charge.card_brand if charge else None,
        card_exp_month=charge.card_exp_month if charge else None,
        card_exp_year=charge.card_exp_year if charge else None,
        paid_at=datetime.now(timezone.utc),
        created_by=created_by,
    )
    db.add(payment)
    await db.flush()
    logger.info("Recorded %s payment of %s for booking %s", method.value, payment.amount, booking.id)
    return payment


async def change_booking_status(
    db: AsyncSession,
    booking: Booking,
    new_status: BookingStatus,
    changed_by: Optional[UUID] = None,
    note: Optional[str] = None,
) -> bool:
    """Move ``booking`` to ``new_status`` and write a history row; False if unchanged."""
    old_status = booking.status
    if old_status == new_status.value:
        return False
    booking.status = new_status.value
    db.add(
        BookingStatusHistory(
            booking_id=booking.id,
            old_status=old_status,
            new_status=new_status.value,
            changed_by=changed_by,
            note=note,
        )
    )
    await db.flush()
    logger.info("Booking %s status %s -> %s", booking.id, old_status, new_status.value)
    return True


async def settle_if_paid(
    db: AsyncSession,
    booking: Booking,
    summary: PaymentSummary,
    changed_by: Optional[UUID] = None,
    note: str = "Payment completed",
) -> bool:
    if booking.status == BookingStatus.PENDING.value and summary.balance_due <= 0:
        return await change_booking_status(db, booking, BookingStatus.PAID, changed_by, note)
    return False


def ensure_payable(booking: Booking, summary: Optional[PaymentSummary], amount) -> Decimal:
    """Validate a payment against the booking's outstanding balance."""
    amount = _decimal(amount)
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidBookingState("Cannot collect payment for a cancelled booking")
    if amount <= 0:
        raise PaymentRejected("Payment amount must be greater than zero")
    balance = _decimal(summary.balance_due) if summary is not None else Decimal("0")
    if amount > balance + Decimal(str(EPSILON)):
        raise PaymentRejected("Payment amount exceeds balance due")
    return amount


async def pay_balance(
    db: AsyncSession,
    booking: Booking,
    amount,
    method: PaymentMethod,
    created_by: Optional[UUID] = None,
    card=None,
    note: str = "Payment completed",
    settle: bool = True,
) -> PaymentSummary:
    """Charge (for cards) and record a payment, then settle the booking when cleared."""
    summary = await db.get(PaymentSummary, booking.id)
    amount = ensure_payable(booking, summary, amount)
    charge = None
    if method == PaymentMethod.CARD:
        charge = await charge_card(amount, card)
    await record_payment(
        db,
        booking,
        amount,
        method,
        created_by=created_by,
        charge=charge,
        provider=COUNTER_CASH_PROVIDER if method == PaymentMethod.CASH else None,
        currency=summary.currency if summary else None,
    )
    summary = await refresh_payment_summary(db, booking)
    if settle:
        await settle_if_paid(db, booking, summary, created_by, note)
    return summary


async def apply_paid_target(
    db: AsyncSession,
    booking: Booking,
    target,
    method: PaymentMethod,
    changed_by: Optional[UUID] = None,
    transaction_id: Optional[str] = None,
    currency: Optional[str] = None,
    note: str = "Payment updated by admin",
) -> PaymentSummary:
    """Raise the amount paid so far to ``target``, recording the difference.

    The booking becomes PAID when the balance clears and PENDING otherwise;
    cancelled bookings keep their status.
    """
    summary = await refresh_payment_summary(db, booking)
    paid = summary.online_paid + summary.cash_paid
    try:
        clamp_online_paid(float(summary.total_amount), float(target))
    except ValueError as exc:
        raise PaymentRejected(str(exc))
    target = _decimal(target)
    if target + Decimal(str(EPSILON)) < paid:
        raise PaymentRejected("Paid amount cannot be lowered below what was already collected")

    delta = target - paid
    if delta > Decimal(str(EPSILON)):
        await record_payment(
            db,
            booking,
            delta,
            method,
            created_by=changed_by,
            transaction_id=transaction_id or (new_transaction_id() if method == PaymentMethod.CARD else None),
            provider=MANUAL_PROVIDER if method == PaymentMethod.CARD else COUNTER_CASH_PROVIDER,
            currency=currency or summary.currency,
        )
        summary = await refresh_payment_summary(db, booking)

    if booking.status != BookingStatus.CANCELLED.value:
        new_status = BookingStatus.PAID if summary.balance_due <= 0 else BookingStatus.PENDING
        await change_booking_status(db, booking, new_status, changed_by, note)
    return summary
