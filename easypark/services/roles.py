"""Role normalisation and assignment."""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.db.enums import RoleName
from easypark.db.models import Role, User

logger = logging.getLogger(__name__)

ROLE_PRIORITY = (
    RoleName.ADMIN,
    RoleName.LANDOWNER,
    RoleName.COUNTER,
    RoleName.WASHER,
    RoleName.CUSTOMER,
)

STAFF_ROLES = (RoleName.COUNTER, RoleName.WASHER, RoleName.LANDOWNER)


def normalize_role(value) -> Optional[RoleName]:
    """Map free-form role text to a RoleName, or None when unknown."""
    if value is None:
        return None
    if isinstance(value, RoleName):
        return value
    text = str(value).strip().upper().replace(" ", "_").replace("-", "_")
    if text in ("LAND_OWNER", "LANDOWNER"):
        return RoleName.LANDOWNER
    try:
        return RoleName(text)
    except ValueError:
        return None


def primary_role(roles: Iterable) -> RoleName:
    normalized = {normalize_role(role) for role in roles}
    for role in ROLE_PRIORITY:
        if role in normalized:
            return role
    return RoleName.CUSTOMER


def legacy_role(role) -> str:
    """Role label sent to clients; land owners keep their historical spelling."""
    role = normalize_role(role) or RoleName.CUSTOMER
    if role is RoleName.LANDOWNER:
        return "LAND_OWNER"
    return role.value


def effective_roles(user: User) -> list:
    """Roles stored for the user; accounts without any act as customers."""
    names = [normalize_role(name) for name in user.role_names]
    names = [name for name in names if name is not None]
    return names or [RoleName.CUSTOMER]


async def ensure_role(db: AsyncSession, role: RoleName) -> Role:
    result = await db.execute(select(Role).where(Role.name == role.value))
    row = result.scalar_one_or_none()
    if row is None:
        row = Role(name=role.value)
        db.add(row)
        await db.flush()
    return row


async def assign_role(db: AsyncSession, user: User, role: RoleName) -> None:
    """Grant ``role`` to ``user``; a no-op when already held."""
    if role.value in user.role_names:
        return
    row = await ensure_role(db, role)
    user.roles.append(row)
    await db.flush()
    logger.info("Granted role %s to user %s", role.value, user.id)


async def set_roles(db: AsyncSession, user: User, roles: Iterable[RoleName]) -> None:
    rows = []
    for role in dict.fromkeys(roles):
        rows.append(await ensure_role(db, role))
    user.roles = rows
    await db.flush()
