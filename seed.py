"""Populate a fresh database with roles, an admin and a demo property.

Usage: python seed.py
"""

import asyncio
import logging

from sqlalchemy import select

from easypark.config import settings
from easypark.db.enums import RoleName, SlotType
from easypark.db.models import Property
from easypark.db.session import AsyncSessionLocal
from easypark.services.properties import add_slots, initial_slot_layout
from easypark.services.roles import ensure_role
from easypark.services.users import add_vehicle, create_user, get_user_by_email, seed_admin

logger = logging.getLogger("seed")

DEMO_PROPERTY = {
    "property_name": "City Centre Car Park",
    "address": "12 Galle Road, Colombo 03",
    "description": "Covered parking with EV chargers and a wash bay",
    "price_per_hour": 300,
    "price_per_day": 2500,
}
DEMO_SLOTS = [
    (SlotType.NORMAL.value, 12),
    (SlotType.EV.value, 3),
    (SlotType.CAR_WASH.value, 2),
]
DEMO_CUSTOMER_EMAIL = "customer@example.com"


async def seed():
    async with AsyncSessionLocal() as db:
        for role in RoleName:
            await ensure_role(db, role)
        await db.commit()

        admin = await seed_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
        if admin is None:
            logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin account")

        result = await db.execute(
            select(Property).where(Property.property_name == DEMO_PROPERTY["property_name"])
        )
        if result.scalar_one_or_none() is None:
            prop = Property(**DEMO_PROPERTY)
            db.add(prop)
            await db.flush()
            await add_slots(db, prop, initial_slot_layout(DEMO_SLOTS))
            logger.info("Created demo property %s with %d slots", prop.id, prop.total_slots)

        if await get_user_by_email(db, DEMO_CUSTOMER_EMAIL) is None:
            customer = await create_user(
                db,
                DEMO_CUSTOMER_EMAIL,
                "customer123",
                "Demo Customer",
                phone="0771234567",
            )
            await add_vehicle(db, customer, "CAB-1234", "Car", "Toyota Axio", "White")

        await db.commit()


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed())
