"""Shared API dependencies."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.config import settings
from easypark.core.security import decode_access_token
from easypark.db.enums import RoleName
from easypark.db.models import User
from easypark.db.session import get_db
from easypark.services.availability import parse_date
from easypark.services.roles import effective_roles

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    """Database session for the current request."""
    return db


def _token_from_request(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    if credentials and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Resolve the authenticated user from the cookie or bearer token."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = _token_from_request(request, credentials)
    if not token:
        raise unauthorized
    payload = decode_access_token(token)
    if payload is None:
        raise unauthorized
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise unauthorized

    user = await db.get(User, user_id)
    if user is None:
        raise unauthorized
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account disabled")
    return user


def require_roles(*allowed: RoleName):
    """Dependency factory: the caller must hold one of ``allowed`` (checked against the database)."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        roles = effective_roles(user)
        if not any(role in allowed for role in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions.",
            )
        return user

    return dependency


require_admin = require_roles(RoleName.ADMIN)
require_manager = require_roles(RoleName.ADMIN, RoleName.LANDOWNER)
require_counter = require_roles(RoleName.ADMIN, RoleName.COUNTER)
require_land_owner = require_roles(RoleName.ADMIN, RoleName.LANDOWNER)
require_washer = require_roles(RoleName.ADMIN, RoleName.COUNTER, RoleName.WASHER)


def day_filter(value: Optional[str]) -> Optional[date]:
    """Optional ``YYYY-MM-DD`` query value; 400 when malformed."""
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date")
