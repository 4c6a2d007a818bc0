"""Account creation, admin seeding, password reset and profile vehicles."""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.config import settings
from easypark.core.security import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    utcnow_naive,
)
from easypark.db.enums import RoleName
from easypark.db.models import PasswordResetToken, User, Vehicle
from easypark.exceptions import DuplicateAccount, InvalidResetToken, VehicleConflict
from easypark.services.roles import assign_role, set_roles

logger = logging.getLogger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def ensure_unique_identity(
    db: AsyncSession,
    email: str,
    nic: Optional[str] = None,
    phone: Optional[str] = None,
    exclude_user_id=None,
) -> None:
    """Raise DuplicateAccount when email, NIC or phone is already in use."""
    checks = [(User.email, email.strip().lower(), "Email already registered")]
    if nic:
        checks.append((User.nic, nic, "NIC already registered"))
    if phone:
        checks.append((User.phone, phone, "Phone number already registered"))
    for column, value, message in checks:
        query = select(User.id).where(column == value)
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        if (await db.execute(query.limit(1))).first() is not None:
            raise DuplicateAccount(message)


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    roles=(RoleName.CUSTOMER,),
    phone: Optional[str] = None,
    nic: Optional[str] = None,
    residential_address: Optional[str] = None,
) -> User:
    user = User(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        full_name=full_name.strip(),
        phone=phone,
        nic=nic,
        residential_address=residential_address,
        is_active=True,
        roles=[],
    )
    db.add(user)
    await db.flush()
    await set_roles(db, user, roles)
    logger.info("Created user %s with roles %s", user.id, [role.value for role in roles])
    return user


async def add_vehicle(
    db: AsyncSession,
    user: User,
    vehicle_number: str,
    vehicle_type: Optional[str] = None,
    model: Optional[str] = None,
    color: Optional[str] = None,
) -> Vehicle:
    """Register a vehicle, refusing numbers owned by someone else."""
    number = vehicle_number.strip().upper()
    result = await db.execute(select(Vehicle).where(Vehicle.vehicle_number == number))
    vehicle = result.scalar_one_or_none()
    if vehicle is not None and vehicle.user_id != user.id:
        raise VehicleConflict()
    if vehicle is None:
        vehicle = Vehicle(user_id=user.id, vehicle_number=number)
        db.add(vehicle)
    vehicle.type = vehicle_type or vehicle.type
    vehicle.model = model or vehicle.model
    vehicle.color = color or vehicle.color
    await db.flush()
    return vehicle


async def latest_vehicle(db: AsyncSession, user: User) -> Optional[Vehicle]:
    result = await db.execute(
        select(Vehicle).where(Vehicle.user_id == user.id).order_by(Vehicle.created_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def update_profile_vehicle(db: AsyncSession, user: User, data: dict) -> None:
    """Apply the profile form's vehicle block to the user's latest vehicle.

    All-blank data removes the latest vehicle.
    """
    values = {key: (str(value).strip() if value is not None else "") for key, value in data.items()}
    current = await latest_vehicle(db, user)
    if not any(values.values()):
        if current is not None:
            await db.delete(current)
            await db.flush()
        return
    number = values.get("vehicle_number", "").upper()
    if not number:
        raise ValueError("Vehicle number is required when vehicle details are provided")

    result = await db.execute(select(Vehicle).where(Vehicle.vehicle_number == number))
    owner = result.scalar_one_or_none()
    if owner is not None and owner.user_id != user.id:
        raise VehicleConflict()

    target = owner or current
    if target is None:
        target = Vehicle(user_id=user.id)
        db.add(target)
    target.vehicle_number = number
    target.type = values.get("type") or None
    target.model = values.get("model") or None
    target.color = values.get("color") or None
    await db.flush()


async def seed_admin(db: AsyncSession, email: Optional[str], password: Optional[str]) -> Optional[User]:
    """Make sure an active ADMIN account exists for the configured credentials."""
    if not email or not password:
        return None
    user = await get_user_by_email(db, email)
    if user is None:
        user = await create_user(db, email, password, "System Administrator", roles=(RoleName.ADMIN,))
        logger.info("Seeded admin account %s", user.email)
    else:
        user.is_active = True
        await assign_role(db, user, RoleName.ADMIN)
    await db.commit()
    return user


async def issue_reset_token(db: AsyncSession, user: User) -> str:
    """Invalidate earlier unused tokens and store a fresh hashed one."""
    await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.user_id == user.id, PasswordResetToken.used.is_(False))
        .values(used=True)
    )
    token = generate_reset_token()
    db.add(
        PasswordResetToken(
            user_id=user.id,
            token_hash=hash_reset_token(token),
            expires_at=utcnow_naive() + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_TTL_MINUTES),
            used=False,
        )
    )
    await db.flush()
    logger.info("Password reset token issued for user %s", user.id)
    return token


async def reset_password(db: AsyncSession, token: str, new_password: str) -> User:
    result = await db.execute(
        select(PasswordResetToken).where(PasswordResetToken.token_hash == hash_reset_token(token))
    )
    record = result.scalar_one_or_none()
    if record is None or record.used or record.expires_at <= utcnow_naive():
        raise InvalidResetToken()
    user = await db.get(User, record.user_id)
    if user is None or not user.is_active:
        raise InvalidResetToken()

    user.password_hash = hash_password(new_password)
    await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.user_id == user.id, PasswordResetToken.used.is_(False))
        .values(used=True)
    )
    await db.flush()
    logger.info("Password reset completed for user %s", user.id)
    return user


def search_clause(search: str):
    pattern = f"%{search.strip()}%"
    return or_(
        User.full_name.ilike(pattern),
        User.email.ilike(pattern),
        User.phone.ilike(pattern),
        User.nic.ilike(pattern),
    )
