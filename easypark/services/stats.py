"""Dashboard counters for administrators."""

from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.db.enums import GatewayStatus, PaymentMethod, PaymentStatus, RoleName
from easypark.db.models import Booking, Payment, Property, Role, user_roles
from easypark.services.availability import BOOKABLE_STATUSES


async def _sum_payments(db: AsyncSession, *criteria) -> float:
    total = await db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.payment_status == PaymentStatus.PAID.value, *criteria
        )
    )
    return float(total or 0)


async def admin_stats(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now()
    day_start = datetime.combine(now.date(), time.min)

    total_revenue = await _sum_payments(
        db,
        Payment.method == PaymentMethod.CARD.value,
        Payment.gateway_status == GatewayStatus.COMPLETED.value,
    )
    cash_revenue = await _sum_payments(db, Payment.method == PaymentMethod.CASH.value)
    total_customers = await db.scalar(
        select(func.count())
        .select_from(user_roles)
        .join(Role, Role.id == user_roles.c.role_id)
        .where(Role.name == RoleName.CUSTOMER.value)
    )
    active_bookings = await db.scalar(
        select(func.count())
        .select_from(Booking)
        .where(
            Booking.status.in_(BOOKABLE_STATUSES),
            Booking.start_time <= now,
            Booking.end_time >= now,
        )
    )
    total_properties = await db.scalar(select(func.count()).select_from(Property))
    bookings_today = await db.scalar(
        select(func.count())
        .select_from(Booking)
        .where(Booking.start_time >= day_start, Booking.start_time < day_start + timedelta(days=1))
    )
    return {
        "total_revenue": total_revenue,
        "cash_revenue": cash_revenue,
        "total_customers": total_customers or 0,
        "active_bookings": active_bookings or 0,
        "total_properties": total_properties or 0,
        "bookings_today": bookings_today or 0,
    }
