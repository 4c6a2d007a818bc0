"""API v1 router."""

from fastapi import APIRouter

from easypark.api.v1.endpoints import (
    admin,
    auth,
    bookings,
    counter,
    land_owner,
    manage,
    notifications,
    profile,
    properties,
    washer,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profile.router, prefix="/profile", tags=["profile"])
api_router.include_router(properties.router, prefix="/properties", tags=["properties"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(manage.router, prefix="/manage", tags=["manage"])
api_router.include_router(counter.router, prefix="/counter", tags=["counter"])
api_router.include_router(land_owner.router, prefix="/land-owner", tags=["land-owner"])
api_router.include_router(washer.router, prefix="/washer", tags=["washer"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
