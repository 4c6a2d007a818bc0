"""User, auth and profile schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from easypark.services.roles import effective_roles, legacy_role, primary_role


class SignUpRequest(BaseModel):
    """Schema for customer self sign-up."""

    email: EmailStr
    password: str
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    nic: Optional[str] = Field(None, max_length=32)
    vehicle_number: Optional[str] = Field(None, max_length=32)


class SignInRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class VehicleBase(BaseModel):
    vehicle_number: str = Field(..., min_length=1, max_length=32)
    type: Optional[str] = Field(None, max_length=64)
    model: Optional[str] = Field(None, max_length=128)
    color: Optional[str] = Field(None, max_length=64)


class VehicleCreate(VehicleBase):
    """Schema for registering a vehicle."""

    pass


class VehicleInput(BaseModel):
    """Vehicle block of the profile form; every field may be blank."""

    vehicle_number: Optional[str] = None
    type: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None


class VehicleResponse(VehicleBase):
    id: UUID
    user_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """Schema for user response."""

    id: UUID
    full_name: str
    email: str
    phone: Optional[str] = None
    nic: Optional[str] = None
    residential_address: Optional[str] = None
    is_active: bool
    role: str
    roles: List[str]
    created_at: datetime

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        roles = effective_roles(user)
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            nic=user.nic,
            residential_address=user.residential_address,
            is_active=user.is_active,
            role=legacy_role(primary_role(roles)),
            roles=[role.value for role in roles],
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    user: UserResponse
    role: str
    roles: List[str]
    token: str


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    nic: Optional[str] = Field(None, max_length=32)
    residential_address: Optional[str] = None
    vehicle: Optional[VehicleInput] = None


class ProfileResponse(UserResponse):
    vehicles: List[VehicleResponse] = []


class StaffCreate(BaseModel):
    """Schema for creating a staff account from the admin console."""

    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=32)
    nic: str = Field(..., min_length=1, max_length=32)
    residential_address: str = Field(..., min_length=1)
    role: str
    password: str
    confirm_password: str


class AdminUserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=32)
    nic: Optional[str] = Field(None, max_length=32)
    residential_address: Optional[str] = None
    is_active: Optional[bool] = None
    roles: Optional[List[str]] = None
