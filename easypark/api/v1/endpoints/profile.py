"""Profile and vehicle endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import get_current_user, get_db_session
from easypark.db.models import User, Vehicle
from easypark.schemas.user import (
    ProfileResponse,
    ProfileUpdate,
    UserResponse,
    VehicleCreate,
    VehicleResponse,
)
from easypark.services.customers import clean
from easypark.services.users import add_vehicle, ensure_unique_identity, update_profile_vehicle

router = APIRouter()


async def _user_vehicles(db: AsyncSession, user: User) -> List[Vehicle]:
    result = await db.execute(
        select(Vehicle).where(Vehicle.user_id == user.id).order_by(Vehicle.created_at.desc())
    )
    return list(result.scalars().all())


async def _profile(db: AsyncSession, user: User) -> ProfileResponse:
    vehicles = await _user_vehicles(db, user)
    return ProfileResponse(
        **UserResponse.from_user(user).model_dump(),
        vehicles=[VehicleResponse.model_validate(vehicle) for vehicle in vehicles],
    )


@router.get("", response_model=ProfileResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Get the caller's profile with vehicles."""
    return await _profile(db, user)


@router.patch("", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update profile details and the primary vehicle."""
    update_data = data.model_dump(exclude_unset=True, exclude={"vehicle"})
    if "nic" in update_data:
        update_data["nic"] = clean(update_data["nic"])
    if "phone" in update_data:
        update_data["phone"] = clean(update_data["phone"])
    if update_data.get("nic"):
        await ensure_unique_identity(db, user.email, nic=update_data["nic"], exclude_user_id=user.id)

    if data.vehicle is not None:
        try:
            await update_profile_vehicle(db, user, data.vehicle.model_dump())
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    for field, value in update_data.items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return await _profile(db, user)


@router.get("/vehicles", response_model=List[VehicleResponse])
async def list_vehicles(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """List the caller's vehicles, newest first."""
    return await _user_vehicles(db, user)


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    data: VehicleCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Register a vehicle for the caller."""
    vehicle = await add_vehicle(db, user, data.vehicle_number, data.type, data.model, data.color)
    await db.commit()
    await db.refresh(vehicle)
    return vehicle


@router.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete one of the caller's vehicles."""
    result = await db.execute(
        select(Vehicle).where(Vehicle.id == vehicle_id, Vehicle.user_id == user.id)
    )
    vehicle = result.scalar_one_or_none()

    if not vehicle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Vehicle with id {vehicle_id} not found",
        )

    await db.delete(vehicle)
    await db.commit()
