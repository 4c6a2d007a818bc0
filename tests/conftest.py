"""Pytest configuration and fixtures."""

import os
from datetime import date, timedelta
from typing import AsyncGenerator

# Settings are read at import time
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_easypark.db")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["MOCK_GATEWAY_DELAY_SECONDS"] = "0"
os.environ["TASK_BROKER_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from easypark.core.rate_limit import rate_limiter
from easypark.core.security import create_access_token
from easypark.db.base import Base
from easypark.db.enums import PropertyStatus, RoleName, SlotType
from easypark.db.models import Property
from easypark.db.session import get_db
from easypark.main import app
from easypark.services.availability import property_slots
from easypark.services.properties import add_slots, initial_slot_layout
from easypark.services.roles import effective_roles, legacy_role, primary_role
from easypark.services.users import create_user

TEST_PASSWORD = "secret123"

# Create test engine
test_engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def bearer_headers(user) -> dict:
    roles = effective_roles(user)
    token = create_access_token(
        user.id,
        user.email,
        legacy_role(primary_role(roles)),
        [role.value for role in roles],
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def booking_day() -> str:
    """Tomorrow as YYYY-MM-DD, so default booking times are in the future."""
    return (date.today() + timedelta(days=1)).isoformat()


@pytest.fixture
def auth_headers():
    """Bearer header for a user without going through sign-in."""
    return bearer_headers


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a clean database session for each test."""
    # Create tables
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async test client; every request gets its own session like in production."""

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    rate_limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating committed users with the given roles."""

    async def _make_user(
        email, roles=(RoleName.CUSTOMER,), full_name="Test User", password=TEST_PASSWORD, **fields
    ):
        user = await create_user(db_session, email, password, full_name, roles=roles, **fields)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_property(db_session: AsyncSession):
    """Factory creating a property with the default A-zone, EV and CW slot layout."""

    async def _make_property(
        name="Test Property",
        owner=None,
        normal=3,
        ev=1,
        car_wash=1,
        price_per_hour=300,
        price_per_day=None,
        status=PropertyStatus.ACTIVATED,
    ):
        prop = Property(
            property_name=name,
            address="1 Test Street",
            price_per_hour=price_per_hour,
            price_per_day=price_per_day,
            currency="LKR",
            status=status.value,
            owner_id=owner.id if owner else None,
            total_slots=0,
            total_normal_slots=0,
            total_ev_slots=0,
            total_car_wash_slots=0,
        )
        db_session.add(prop)
        await db_session.flush()
        layout = initial_slot_layout(
            [
                (SlotType.NORMAL.value, normal),
                (SlotType.EV.value, ev),
                (SlotType.CAR_WASH.value, car_wash),
            ]
        )
        await add_slots(db_session, prop, layout)
        await db_session.commit()
        return prop

    return _make_property


@pytest.fixture
def slots_of(db_session: AsyncSession):
    """Slots of a property keyed by slot number."""

    async def _slots_of(prop):
        return {slot.slot_number: slot for slot in await property_slots(db_session, prop.id)}

    return _slots_of


@pytest.fixture
async def customer(make_user):
    return await make_user("customer@example.com", full_name="Nimal Perera", phone="0771111111")


@pytest.fixture
async def admin(make_user):
    return await make_user("admin@example.com", roles=(RoleName.ADMIN,), full_name="Admin User")


@pytest.fixture
async def counter_user(make_user):
    return await make_user("counter@example.com", roles=(RoleName.COUNTER,), full_name="Front Desk")


@pytest.fixture
async def washer(make_user):
    return await make_user("washer@example.com", roles=(RoleName.WASHER,), full_name="Kamal Washer")


@pytest.fixture
async def land_owner(make_user):
    return await make_user("owner@example.com", roles=(RoleName.LANDOWNER,), full_name="Land Owner")
