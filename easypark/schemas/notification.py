"""Notification and dashboard schemas."""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    """Schema for notification response."""

    id: UUID
    title: str
    message: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationList(BaseModel):
    items: List[NotificationResponse]
    unread_count: int


class AdminStats(BaseModel):
    total_revenue: float
    cash_revenue: float
    total_customers: int
    active_bookings: int
    total_properties: int
    bookings_today: int
