"""ParkingSlot schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from easypark.db.enums import SlotType


class ParkingSlotCreate(BaseModel):
    """Schema for adding slots: a single numbered slot or a batch in a zone."""

    slot_number: Optional[str] = Field(None, min_length=1, max_length=32)
    slot_type: SlotType = SlotType.NORMAL
    zone: Optional[str] = Field(None, min_length=1, max_length=8, pattern=r"^[A-Za-z]+$")
    count: Optional[int] = Field(None, ge=1, le=100)

    @model_validator(mode="after")
    def check_mode(self):
        if self.slot_number is None and (self.zone is None or self.count is None):
            raise ValueError("Provide slot_number, or zone and count")
        return self


class ParkingSlotUpdate(BaseModel):
    """Schema for updating a parking slot."""

    slot_type: Optional[SlotType] = None
    is_active: Optional[bool] = None


class ParkingSlotResponse(BaseModel):
    """Schema for parking slot response."""

    id: UUID
    property_id: UUID
    slot_number: str
    slot_type: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SlotBoardEntry(BaseModel):
    """Live status of a slot at a given instant."""

    id: UUID
    slot_number: str
    slot_type: str
    is_active: bool
    status: str  # 'AVAILABLE', 'OCCUPIED', 'MAINTENANCE'
    booking_id: Optional[UUID] = None
