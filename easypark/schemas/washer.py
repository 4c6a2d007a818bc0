"""Wash job schemas."""

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class WashCustomer(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None


class WashJobResponse(BaseModel):
    """Schema for wash job response."""

    id: UUID
    booking_id: UUID
    booking_number: str
    customer_id: UUID
    customer: WashCustomer
    slot_number: str
    slot_time: datetime
    end_time: datetime
    vehicle: str
    service_type: str
    status: str  # job status, or 'CANCELLED' when the booking was cancelled
    washer_id: Optional[UUID] = None
    notes: str
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class WashJobReschedule(BaseModel):
    slot_time: datetime


class WashJobBulkAction(BaseModel):
    job_ids: List[UUID] = Field(..., min_length=1, max_length=100)
    action: Literal["accept", "complete"]


class WashJobBulkResult(BaseModel):
    job_id: UUID
    success: bool
    error: Optional[str] = None


class WashStatusCounts(BaseModel):
    total: int
    pending: int
    accepted: int
    completed: int
    cancelled: int


class UpcomingWashJob(BaseModel):
    id: UUID
    slot_time: datetime
    status: str


class WasherStats(BaseModel):
    date: date
    today: WashStatusCounts
    all_time: WashStatusCounts
    upcoming: List[UpcomingWashJob]
    total_customers: int


class WasherCustomer(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    total_jobs: int
    completed_jobs: int
    last_visit: Optional[datetime] = None
