"""Wash job queries and state transitions."""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from easypark.db.enums import BookingStatus, RoleName, WashStatus
from easypark.db.models import Booking, BookingSlot, User, WashJob
from easypark.exceptions import BookingConflict, InvalidBookingState, InvalidBookingTime
from easypark.services.availability import find_conflicting_booking
from easypark.services.bookings import cancel_booking
from easypark.services.notifications import notify

logger = logging.getLogger(__name__)

CANCELLED = "CANCELLED"
SORT_OPTIONS = ("earliest", "latest", "vehicle", "status")

WASH_JOB_OPTIONS = (
    selectinload(WashJob.booking_slot).selectinload(BookingSlot.slot),
    selectinload(WashJob.booking_slot)
    .selectinload(BookingSlot.booking)
    .selectinload(Booking.customer),
    selectinload(WashJob.booking_slot)
    .selectinload(BookingSlot.booking)
    .selectinload(Booking.vehicle),
    selectinload(WashJob.booking_slot)
    .selectinload(BookingSlot.booking)
    .selectinload(Booking.booking_slots),
)


def effective_status(job: WashJob) -> str:
    if job.booking_slot.booking.status == BookingStatus.CANCELLED.value:
        return CANCELLED
    return job.status


def job_payload(job: WashJob) -> dict:
    booking = job.booking_slot.booking
    customer = booking.customer
    return {
        "id": job.id,
        "booking_id": booking.id,
        "booking_number": booking.booking_number,
        "customer_id": customer.id,
        "customer": {
            "id": customer.id,
            "name": customer.full_name,
            "email": customer.email,
            "phone": customer.phone,
        },
        "slot_number": job.booking_slot.slot.slot_number,
        "slot_time": booking.start_time,
        "end_time": booking.end_time,
        "vehicle": booking.vehicle.vehicle_number if booking.vehicle else "N/A",
        "service_type": "Car Wash",
        "status": effective_status(job),
        "washer_id": job.washer_id,
        "notes": job.note or "",
        "accepted_at": job.accepted_at,
        "completed_at": job.completed_at,
        "created_at": job.created_at,
    }


def _visible_to(query, user: User, roles):
    """Washers only see jobs assigned to them or still unassigned."""
    if RoleName.ADMIN in roles or RoleName.COUNTER in roles:
        return query
    return query.where(or_(WashJob.washer_id == user.id, WashJob.washer_id.is_(None)))


async def load_job(db: AsyncSession, job_id: UUID, user: User, roles) -> Optional[WashJob]:
    query = (
        select(WashJob)
        .options(*WASH_JOB_OPTIONS)
        .where(WashJob.id == job_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(_visible_to(query, user, roles))
    return result.scalar_one_or_none()


async def list_jobs(
    db: AsyncSession,
    user: User,
    roles,
    status: Optional[str] = None,
    day=None,
    search: Optional[str] = None,
    sort_by: str = "earliest",
) -> List[WashJob]:
    query = (
        select(WashJob)
        .options(*WASH_JOB_OPTIONS)
        .join(BookingSlot, WashJob.booking_slot_id == BookingSlot.id)
        .join(Booking, BookingSlot.booking_id == Booking.id)
        .order_by(WashJob.created_at.desc())
        .execution_options(populate_existing=True)
    )
    if day is not None:
        day_start = datetime.combine(day, time.min)
        query = query.where(
            Booking.start_time >= day_start,
            Booking.start_time < day_start + timedelta(days=1),
        )
    result = await db.execute(_visible_to(query, user, roles))
    jobs = list(result.scalars().unique().all())

    status = (status or "").strip().upper()
    if status and status != "ALL":
        jobs = [job for job in jobs if effective_status(job) == status]

    needle = (search or "").strip().lower()
    if needle:
        jobs = [
            job
            for job in jobs
            if needle in job.booking_slot.booking.customer.full_name.lower()
            or needle in job.booking_slot.booking.customer.email.lower()
            or needle in _vehicle_number(job).lower()
        ]

    if sort_by == "latest":
        jobs.sort(key=lambda job: job.booking_slot.booking.start_time, reverse=True)
    elif sort_by == "vehicle":
        jobs.sort(key=_vehicle_number)
    elif sort_by == "status":
        jobs.sort(key=effective_status)
    else:
        jobs.sort(key=lambda job: job.booking_slot.booking.start_time)
    return jobs


def _vehicle_number(job: WashJob) -> str:
    vehicle = job.booking_slot.booking.vehicle
    return vehicle.vehicle_number if vehicle else "N/A"


async def accept_job(db: AsyncSession, job: WashJob, washer: User) -> WashJob:
    if job.booking_slot.booking.status == BookingStatus.CANCELLED.value:
        raise InvalidBookingState("Cannot accept a job for a cancelled booking")
    if job.status != WashStatus.PENDING.value:
        raise InvalidBookingState("Only pending jobs can be accepted")
    job.status = WashStatus.ACCEPTED.value
    job.washer_id = washer.id
    job.accepted_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Wash job %s accepted by %s", job.id, washer.id)
    return job


async def complete_job(db: AsyncSession, job: WashJob, washer: User) -> WashJob:
    if job.booking_slot.booking.status == BookingStatus.CANCELLED.value:
        raise InvalidBookingState("Cannot complete a job for a cancelled booking")
    if job.status != WashStatus.ACCEPTED.value:
        raise InvalidBookingState("Only accepted jobs can be completed")
    job.status = WashStatus.COMPLETED.value
    job.completed_at = datetime.now(timezone.utc)
    if job.washer_id is None:
        job.washer_id = washer.id
    booking = job.booking_slot.booking
    await notify(
        db,
        booking.customer_id,
        "Car Wash Completed",
        f"Your car wash for booking {booking.booking_number} has been completed.",
    )
    logger.info("Wash job %s completed by %s", job.id, washer.id)
    return job


async def cancel_job(db: AsyncSession, job: WashJob, washer: User) -> WashJob:
    booking = job.booking_slot.booking
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidBookingState("Booking is already cancelled")
    await cancel_booking(db, booking, washer.id, "Cancelled from washer dashboard")
    job.note = f"{job.note}\nCancelled by washer." if job.note else "Cancelled by washer."
    await notify(
        db,
        booking.customer_id,
        "Car Wash Cancelled",
        f"Your car wash booking {booking.booking_number} has been cancelled.",
    )
    await db.flush()
    return job


async def reschedule_job(
    db: AsyncSession,
    job: WashJob,
    washer: User,
    slot_time: datetime,
    now: Optional[datetime] = None,
) -> WashJob:
    """Move the job's booking to ``slot_time``, keeping its duration."""
    booking = job.booking_slot.booking
    if booking.status == BookingStatus.CANCELLED.value:
        raise InvalidBookingState("Cannot reschedule a cancelled booking")
    if job.status not in (WashStatus.PENDING.value, WashStatus.ACCEPTED.value):
        raise InvalidBookingState("Only pending or accepted jobs can be rescheduled")
    if slot_time <= (now or datetime.now()):
        raise InvalidBookingTime("Reschedule time must be in the future")

    duration = max(booking.end_time - booking.start_time, timedelta(hours=1))
    new_end = slot_time + duration
    slot_ids = [booking_slot.slot_id for booking_slot in booking.booking_slots]
    conflict = await find_conflicting_booking(db, slot_ids, slot_time, new_end, exclude_booking_id=booking.id)
    if conflict is not None:
        raise BookingConflict()

    booking.start_time = slot_time
    booking.end_time = new_end
    await db.flush()
    logger.info("Wash job %s rescheduled to %s by %s", job.id, slot_time, washer.id)
    return job


def status_counts(jobs: List[WashJob]) -> dict:
    counts = {"total": len(jobs), "pending": 0, "accepted": 0, "completed": 0, "cancelled": 0}
    for job in jobs:
        counts[effective_status(job).lower()] += 1
    return counts


async def washer_stats(db: AsyncSession, user: User, roles, day, now: Optional[datetime] = None) -> dict:
    """Per-day and all-time counts; washers see only jobs assigned to them."""
    now = now or datetime.now()
    query = select(WashJob).options(*WASH_JOB_OPTIONS).execution_options(populate_existing=True)
    if not (RoleName.ADMIN in roles or RoleName.COUNTER in roles):
        query = query.where(WashJob.washer_id == user.id)
    result = await db.execute(query)
    jobs = list(result.scalars().all())

    day_jobs = [job for job in jobs if job.booking_slot.booking.start_time.date() == day]
    horizon = now + timedelta(hours=2)
    upcoming = sorted(
        (job for job in jobs if now <= job.booking_slot.booking.start_time <= horizon),
        key=lambda job: job.booking_slot.booking.start_time,
    )[:5]
    return {
        "date": day,
        "today": status_counts(day_jobs),
        "all_time": status_counts(jobs),
        "upcoming": [
            {
                "id": job.id,
                "slot_time": job.booking_slot.booking.start_time,
                "status": effective_status(job),
            }
            for job in upcoming
        ],
        "total_customers": len({job.booking_slot.booking.customer_id for job in jobs}),
    }


async def washer_customers(db: AsyncSession, user: User, roles) -> List[dict]:
    query = select(WashJob).options(*WASH_JOB_OPTIONS).execution_options(populate_existing=True)
    result = await db.execute(_visible_to(query, user, roles))
    customers = {}
    for job in result.scalars().all():
        booking = job.booking_slot.booking
        entry = customers.setdefault(
            booking.customer_id,
            {
                "id": booking.customer.id,
                "name": booking.customer.full_name,
                "email": booking.customer.email,
                "phone": booking.customer.phone,
                "total_jobs": 0,
                "completed_jobs": 0,
                "last_visit": None,
            },
        )
        entry["total_jobs"] += 1
        if effective_status(job) == WashStatus.COMPLETED.value:
            entry["completed_jobs"] += 1
        if entry["last_visit"] is None or booking.start_time > entry["last_visit"]:
            entry["last_visit"] = booking.start_time
    return sorted(customers.values(), key=lambda entry: entry["last_visit"], reverse=True)
