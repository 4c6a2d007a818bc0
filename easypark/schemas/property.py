"""Property and availability schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from easypark.db.enums import PropertyStatus, SlotType


class SlotConfig(BaseModel):
    type: SlotType
    count: int = Field(..., ge=0, le=500)


class PropertyBase(BaseModel):
    """Base property schema."""

    property_name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=512)
    description: Optional[str] = None
    price_per_hour: float = Field(300, ge=0)
    price_per_day: Optional[float] = Field(None, ge=0)
    currency: str = Field("LKR", min_length=3, max_length=8)
    status: PropertyStatus = PropertyStatus.ACTIVATED


class PropertyCreate(PropertyBase):
    """Schema for creating a property with its initial slot layout."""

    owner_id: Optional[UUID] = None
    slots: List[SlotConfig] = []


class PropertyUpdate(BaseModel):
    """Schema for updating a property."""

    property_name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, min_length=1, max_length=512)
    description: Optional[str] = None
    price_per_hour: Optional[float] = Field(None, ge=0)
    price_per_day: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=8)
    status: Optional[PropertyStatus] = None
    owner_id: Optional[UUID] = None


class PropertyResponse(PropertyBase):
    """Schema for property response."""

    id: UUID
    owner_id: Optional[UUID] = None
    total_slots: int
    total_normal_slots: int
    total_ev_slots: int
    total_car_wash_slots: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SlotBreakdown(BaseModel):
    total: int = 0
    normal: int = 0
    ev: int = 0
    car_wash: int = 0
    active: int = 0


class PropertyWithSlots(PropertyResponse):
    slot_breakdown: SlotBreakdown

    @classmethod
    def from_property(cls, prop, breakdown: dict) -> "PropertyWithSlots":
        data = PropertyResponse.model_validate(prop).model_dump()
        return cls(**data, slot_breakdown=breakdown)


class SlotAvailability(BaseModel):
    id: UUID
    number: str
    type: str
    is_available: bool
    status: str


class TimeOption(BaseModel):
    time: str
    label: str
    is_peak: bool
    is_enabled: bool


class AvailabilityResponse(BaseModel):
    slots: List[SlotAvailability]
    time_options: List[TimeOption]
    requested_start: Optional[datetime] = None
    requested_end: Optional[datetime] = None
