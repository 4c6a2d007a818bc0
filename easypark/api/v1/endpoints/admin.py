"""Administrator console endpoints."""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import day_filter, get_db_session, require_admin
from easypark.config import settings
from easypark.db.enums import RoleName
from easypark.db.models import Booking, Role, User, user_roles
from easypark.schemas.booking import (
    BookingPaymentDetails,
    BookingPaymentUpdate,
    BookingPaymentUpdateResponse,
    CustomerDetail,
    StaffBookingList,
)
from easypark.schemas.notification import AdminStats
from easypark.schemas.user import AdminUserUpdate, StaffCreate, UserResponse
from easypark.services.bookings import (
    list_bookings,
    load_booking,
    payment_details_payload,
    staff_booking_row,
)
from easypark.services.customers import clean, customer_detail
from easypark.services.payments import apply_paid_target
from easypark.services.roles import STAFF_ROLES, normalize_role, set_roles
from easypark.services.stats import admin_stats
from easypark.services.users import create_user, ensure_unique_identity, search_clause

logger = logging.getLogger(__name__)

router = APIRouter()


def with_role(query, roles):
    """Restrict a User query to holders of any of ``roles``."""
    holders = (
        select(user_roles.c.user_id)
        .join(Role, Role.id == user_roles.c.role_id)
        .where(Role.name.in_([role.value for role in roles]))
    )
    return query.where(User.id.in_(holders))


async def get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User with id {user_id} not found",
        )

    return user


async def get_booking_or_404(db: AsyncSession, booking_id: UUID) -> Booking:
    booking = await load_booking(db, booking_id)

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking with id {booking_id} not found",
        )

    return booking


def parse_roles(values: List[str]) -> List[RoleName]:
    roles = [normalize_role(value) for value in values]
    if any(role is None for role in roles):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")
    return roles


@router.get("/users", response_model=List[UserResponse])
async def list_users(
    role: Optional[str] = Query(None, description="Filter by role"),
    search: Optional[str] = Query(None),
    skip: int = 0,
    limit: int = 100,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """List user accounts, newest first."""
    query = select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
    if role:
        query = with_role(query, parse_roles([role]))
    if search and search.strip():
        query = query.where(search_clause(search))

    result = await db.execute(query)
    return [UserResponse.from_user(user) for user in result.scalars().all()]


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_staff_user(
    data: StaffCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a counter, washer or land owner account."""
    role = normalize_role(data.role)
    if role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role must be COUNTER, WASHER or LANDOWNER",
        )
    if len(data.password) < settings.STAFF_PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.STAFF_PASSWORD_MIN_LENGTH} characters",
        )
    if data.password != data.confirm_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match")

    phone = clean(data.phone)
    nic = clean(data.nic)
    await ensure_unique_identity(db, data.email, nic=nic, phone=phone)

    user = await create_user(
        db,
        data.email,
        data.password,
        data.full_name,
        roles=(role,),
        phone=phone,
        nic=nic,
        residential_address=clean(data.residential_address),
    )
    await db.commit()
    logger.info("Admin %s created %s account %s", admin.id, role.value, user.id)
    return UserResponse.from_user(user)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    return UserResponse.from_user(await get_user_or_404(db, user_id))


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Update account details, activation and roles."""
    user = await get_user_or_404(db, user_id)

    update_data = data.model_dump(exclude_unset=True, exclude={"roles"})
    if update_data.get("is_active") is False and user.id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account",
        )
    for field in ("phone", "nic", "residential_address"):
        if field in update_data:
            update_data[field] = clean(update_data[field])
    if update_data.get("email"):
        update_data["email"] = update_data["email"].strip().lower()
    for field in ("full_name", "email", "is_active"):
        if field in update_data and update_data[field] is None:
            update_data.pop(field)

    await ensure_unique_identity(
        db,
        update_data.get("email", user.email),
        nic=update_data.get("nic"),
        phone=update_data.get("phone"),
        exclude_user_id=user.id,
    )
    roles = parse_roles(data.roles) if data.roles is not None else None

    for field, value in update_data.items():
        setattr(user, field, value)
    if roles is not None:
        await set_roles(db, user, roles)

    await db.commit()
    await db.refresh(user)
    return UserResponse.from_user(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete an account that has no bookings."""
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )
    user = await get_user_or_404(db, user_id)

    booking_count = await db.scalar(
        select(func.count()).select_from(Booking).where(Booking.customer_id == user.id)
    )
    if booking_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User has bookings and cannot be deleted; deactivate the account instead",
        )

    await db.delete(user)
    await db.commit()
    logger.info("Admin %s deleted user %s", admin.id, user_id)


@router.get("/staff-members", response_model=List[UserResponse])
async def list_staff(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Users holding a counter, washer or land owner role."""
    query = with_role(select(User), STAFF_ROLES).order_by(User.full_name)
    result = await db.execute(query)
    return [UserResponse.from_user(user) for user in result.scalars().all()]


@router.get("/customers", response_model=List[UserResponse])
async def list_customers(
    search: Optional[str] = Query(None),
    skip: int = 0,
    limit: int = 100,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    query = (
        with_role(select(User), [RoleName.CUSTOMER])
        .order_by(User.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    if search and search.strip():
        query = query.where(search_clause(search))

    result = await db.execute(query)
    return [UserResponse.from_user(user) for user in result.scalars().all()]


@router.get("/customers/{customer_id}", response_model=CustomerDetail)
async def get_customer(
    customer_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Customer profile with vehicles and every booking."""
    customer = await get_user_or_404(db, customer_id)
    return await customer_detail(db, customer)


@router.get("/bookings", response_model=StaffBookingList)
async def list_all_bookings(
    property_id: Optional[str] = Query(None, description="Property id or 'all'"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    start_time: Optional[str] = Query(None),
    end_time: Optional[str] = Query(None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    bookings = await list_bookings(
        db,
        property_id=property_id,
        day=day_filter(date),
        status=status_filter,
        search=search,
        start_time=start_time,
        end_time=end_time,
    )
    rows = [staff_booking_row(booking) for booking in bookings]
    return StaffBookingList(bookings=rows, total=len(rows))


@router.get("/bookings/{booking_id}/payment", response_model=BookingPaymentDetails)
async def get_booking_payment(
    booking_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Payment totals and latest gateway details for a booking."""
    return payment_details_payload(await get_booking_or_404(db, booking_id))


@router.post("/bookings/{booking_id}/payment", response_model=BookingPaymentUpdateResponse)
async def set_booking_payment(
    booking_id: UUID,
    data: BookingPaymentUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Raise the amount paid on a booking; the difference becomes a new payment."""
    booking = await get_booking_or_404(db, booking_id)
    await apply_paid_target(
        db,
        booking,
        data.online_paid,
        data.payment_method,
        changed_by=admin.id,
        transaction_id=data.transaction_id,
        currency=data.currency,
    )
    await db.commit()

    booking = await load_booking(db, booking.id)
    return BookingPaymentUpdateResponse.from_details(payment_details_payload(booking))


@router.get("/stats", response_model=AdminStats)
async def get_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
):
    """Dashboard totals."""
    return await admin_stats(db)
