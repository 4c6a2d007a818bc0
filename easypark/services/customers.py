"""Customer lookup and walk-in account creation for the counter."""

import logging
import secrets
import time
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.core.security import hash_password
from easypark.db.enums import RoleName
from easypark.db.models import User, Vehicle
from easypark.exceptions import VehicleConflict
from easypark.services.bookings import booking_summary_payload, list_bookings
from easypark.services.roles import assign_role

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "@easypark.local"


def clean(value) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def clean_email(value) -> Optional[str]:
    text = clean(value)
    return text.lower() if text else None


def walk_in_email() -> str:
    return f"walkin.{int(time.time() * 1000)}.{secrets.token_hex(3)}{PLACEHOLDER_EMAIL_DOMAIN}"


async def find_customer(
    db: AsyncSession,
    customer_id: Optional[UUID] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    nic: Optional[str] = None,
    vehicle_number: Optional[str] = None,
) -> Optional[User]:
    """First match by id, then email, phone, NIC and vehicle number."""
    if customer_id:
        return await db.get(User, customer_id)
    if email:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()
    if phone:
        result = await db.execute(select(User).where(User.phone == phone).limit(1))
        return result.scalars().first()
    if nic:
        result = await db.execute(select(User).where(User.nic == nic).limit(1))
        return result.scalars().first()
    if vehicle_number:
        result = await db.execute(
            select(User).join(Vehicle, Vehicle.user_id == User.id).where(Vehicle.vehicle_number == vehicle_number)
        )
        return result.scalars().first()
    return None


async def find_vehicle(db: AsyncSession, vehicle_number: str) -> Optional[Vehicle]:
    result = await db.execute(select(Vehicle).where(Vehicle.vehicle_number == vehicle_number))
    return result.scalar_one_or_none()


async def resolve_or_create_customer(db: AsyncSession, data) -> Tuple[User, Optional[UUID]]:
    """Find or create the walk-in customer and their vehicle.

    ``data`` carries customer_id, full_name, email, phone, nic, address and
    vehicle_number / vehicle_type / vehicle_model / vehicle_color. Returns the
    customer and the vehicle id to attach to the booking.
    """
    full_name = clean(data.full_name)
    email = clean_email(data.email)
    phone = clean(data.phone)
    nic = clean(data.nic)
    address = clean(data.address)
    vehicle_number = clean(data.vehicle_number)
    vehicle_number = vehicle_number.upper() if vehicle_number else None

    customer = await find_customer(db, data.customer_id, email, phone, nic, vehicle_number)

    existing_vehicle = await find_vehicle(db, vehicle_number) if vehicle_number else None
    if existing_vehicle is not None and (customer is None or existing_vehicle.user_id != customer.id):
        raise VehicleConflict()

    if customer is None:
        customer = User(
            full_name=full_name or "Walk-in Customer",
            email=email or walk_in_email(),
            phone=phone,
            nic=nic,
            residential_address=address,
            password_hash=hash_password(secrets.token_urlsafe(16)),
            roles=[],
        )
        db.add(customer)
        await db.flush()
        logger.info("Created walk-in customer %s", customer.id)
    else:
        if full_name and full_name != customer.full_name:
            customer.full_name = full_name
        if phone and not customer.phone:
            customer.phone = phone
        if nic and not customer.nic:
            customer.nic = nic
        if address and not customer.residential_address:
            customer.residential_address = address
        if email and customer.email.endswith(PLACEHOLDER_EMAIL_DOMAIN):
            result = await db.execute(select(User).where(User.email == email))
            taken = result.scalar_one_or_none()
            if taken is None or taken.id == customer.id:
                customer.email = email
        await db.flush()

    await assign_role(db, customer, RoleName.CUSTOMER)

    vehicle_type = clean(data.vehicle_type)
    vehicle_model = clean(data.vehicle_model)
    vehicle_color = clean(data.vehicle_color)
    if vehicle_number:
        if existing_vehicle is not None:
            existing_vehicle.type = vehicle_type or existing_vehicle.type
            existing_vehicle.model = vehicle_model or existing_vehicle.model
            existing_vehicle.color = vehicle_color or existing_vehicle.color
            await db.flush()
            return customer, existing_vehicle.id
        vehicle = Vehicle(
            user_id=customer.id,
            vehicle_number=vehicle_number,
            type=vehicle_type,
            model=vehicle_model,
            color=vehicle_color,
        )
        db.add(vehicle)
        await db.flush()
        return customer, vehicle.id

    result = await db.execute(
        select(Vehicle.id).where(Vehicle.user_id == customer.id).order_by(Vehicle.created_at.desc()).limit(1)
    )
    return customer, result.scalar_one_or_none()


async def customer_detail(db: AsyncSession, customer: User, property_ids=None) -> dict:
    """Profile, vehicles and bookings of ``customer``, optionally scoped to properties."""
    bookings = await list_bookings(db, property_ids=property_ids, customer_id=customer.id)
    result = await db.execute(
        select(Vehicle).where(Vehicle.user_id == customer.id).order_by(Vehicle.created_at.desc())
    )
    summaries = [booking_summary_payload(booking) for booking in bookings]
    return {
        "id": customer.id,
        "full_name": customer.full_name,
        "email": customer.email,
        "phone": customer.phone,
        "nic": customer.nic,
        "residential_address": customer.residential_address,
        "is_active": customer.is_active,
        "created_at": customer.created_at,
        "vehicles": [
            {
                "id": vehicle.id,
                "vehicle_number": vehicle.vehicle_number,
                "type": vehicle.type,
                "model": vehicle.model,
                "color": vehicle.color,
            }
            for vehicle in result.scalars().all()
        ],
        "bookings": summaries,
        "total_bookings": len(summaries),
        "total_spent": sum(summary["paid_amount"] for summary in summaries),
    }
