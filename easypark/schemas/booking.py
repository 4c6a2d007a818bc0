"""Booking and payment schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from easypark.db.enums import BookingStatus, PaymentMethod


class CardDetails(BaseModel):
    """Card data sent to the mock gateway; only the last four digits are stored."""

    number: str = Field(..., min_length=12, max_length=23)
    exp_month: int = Field(..., ge=1, le=12)
    exp_year: int = Field(..., ge=2000, le=2100)
    cvc: str = Field(..., min_length=3, max_length=4)
    holder_name: Optional[str] = None


class BookingRequestBase(BaseModel):
    property_id: UUID
    slot_ids: List[UUID] = Field(..., min_length=1)
    date: date
    start_time: str
    duration: float = Field(1, gt=0, le=24 * 30)

    @field_validator("slot_ids")
    @classmethod
    def unique_slots(cls, value):
        if len(set(value)) != len(value):
            raise ValueError("slot_ids must be unique")
        return value


class BookingCreate(BookingRequestBase):
    """Schema for a customer booking."""

    vehicle_id: Optional[UUID] = None
    advance_amount: float = Field(0, ge=0)
    card: Optional[CardDetails] = None


class BookingPaymentCreate(BaseModel):
    amount: float = Field(..., gt=0)
    card: Optional[CardDetails] = None


class PropertyRef(BaseModel):
    id: UUID
    name: str
    address: str


class SlotRef(BaseModel):
    id: UUID
    number: str
    zone: str
    type: str


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: UUID
    amount: float
    currency: str
    method: str
    payment_status: str
    gateway_status: str
    gateway_provider: Optional[str] = None
    transaction_id: Optional[str] = None
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusHistoryResponse(BaseModel):
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[UUID] = None
    note: Optional[str] = None
    changed_at: datetime

    model_config = {"from_attributes": True}


class WashJobRef(BaseModel):
    id: UUID
    slot_number: str
    status: str


class PaymentAmounts(BaseModel):
    total_amount: float
    online_paid: float
    cash_paid: float
    paid_amount: float
    balance_due: float
    currency: str
    payment_status: str  # 'PAID', 'PARTIAL', 'UNPAID'


class BookingSummary(PaymentAmounts):
    """Customer-facing booking list entry."""

    id: UUID
    booking_number: str
    property: PropertyRef
    start_time: datetime
    end_time: datetime
    duration_hours: int
    status: str
    parking_type: str
    booking_type: str
    slots: List[SlotRef]
    vehicle_number: Optional[str] = None
    created_at: datetime


class BookingDetail(BookingSummary):
    payments: List[PaymentResponse] = []
    status_history: List[StatusHistoryResponse] = []
    wash_jobs: List[WashJobRef] = []


class CounterActionRef(BaseModel):
    action: str
    note: Optional[str] = None
    created_at: datetime
    counter_name: Optional[str] = None


class StaffBookingRow(PaymentAmounts):
    """Booking row shown to counter staff, land owners and admins."""

    booking_id: UUID
    booking_number: str
    property_id: UUID
    property_name: str
    property_address: str
    start_time: datetime
    end_time: datetime
    slot_number: str
    slot_zone: str
    customer_id: UUID
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    vehicle_id: Optional[UUID] = None
    vehicle_number: str
    vehicle_type: Optional[str] = None
    status: str
    duration: int
    booking_type: str
    payment_method: str
    all_slots: List[SlotRef]
    latest_counter_action: Optional[CounterActionRef] = None
    created_at: datetime
    updated_at: datetime


class StaffBookingList(BaseModel):
    bookings: List[StaffBookingRow]
    total: int


class CustomerRef(BaseModel):
    id: UUID
    full_name: str
    email: str


class BookingPaymentDetails(BaseModel):
    """Payment view of a booking for admins and land owners."""

    payment_id: Optional[UUID] = None
    booking_id: UUID
    customer: CustomerRef
    property: PropertyRef
    total_amount: float
    online_paid: float
    cash_paid: float
    balance_due: float
    currency: str
    payment_method: str
    payment_gateway_status: str
    payment_status: str
    transaction_id: Optional[str] = None
    booking_date: datetime
    check_in_time: datetime
    check_out_time: datetime
    hours_selected: int
    parking_type: str
    booking_type: str
    booking_status: str
    created_at: datetime
    updated_at: datetime


class BookingPaymentUpdate(BaseModel):
    """Set the amount paid so far; the difference is recorded as a new payment."""

    online_paid: float = Field(..., ge=0)
    payment_method: PaymentMethod = PaymentMethod.CARD
    currency: Optional[str] = Field(None, min_length=3, max_length=8)
    transaction_id: Optional[str] = Field(None, max_length=128)


class BookingPaymentUpdateResponse(BaseModel):
    booking_id: UUID
    status: str
    total_amount: float
    online_paid: float
    cash_paid: float
    balance_due: float
    payment_status: str
    payment_method: str
    transaction_id: Optional[str] = None

    @classmethod
    def from_details(cls, details: dict) -> "BookingPaymentUpdateResponse":
        return cls(status=details["booking_status"], **details)


class WalkInCustomer(BaseModel):
    customer_id: Optional[UUID] = None
    full_name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    nic: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = None
    vehicle_number: Optional[str] = Field(None, max_length=32)
    vehicle_type: Optional[str] = Field(None, max_length=64)
    vehicle_model: Optional[str] = Field(None, max_length=128)
    vehicle_color: Optional[str] = Field(None, max_length=64)


class CounterBookingCreate(BookingRequestBase):
    """Schema for a walk-in booking made at the counter."""

    customer: WalkInCustomer = WalkInCustomer()
    advance_amount: float = Field(0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    note: Optional[str] = None


class CounterBookingCreated(BaseModel):
    booking_id: UUID
    booking_number: str
    customer_id: UUID
    status: str
    total_amount: float
    balance_due: float


class CounterBookingUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    collect_cash_amount: Optional[float] = Field(None, ge=0)
    note: Optional[str] = None


class CounterBookingUpdated(BaseModel):
    booking_id: UUID
    status: str
    total_amount: float
    online_paid: float
    cash_paid: float
    balance_due: float


class CounterTransactionResponse(BaseModel):
    id: UUID
    booking_id: UUID
    booking_number: str
    counter_user_id: UUID
    counter_name: Optional[str] = None
    action: str
    note: Optional[str] = None
    created_at: datetime


class CustomerDetail(BaseModel):
    """Customer profile with vehicles and bookings, for staff views."""

    id: UUID
    full_name: str
    email: str
    phone: Optional[str] = None
    nic: Optional[str] = None
    residential_address: Optional[str] = None
    is_active: bool
    created_at: datetime
    vehicles: List[dict] = []
    bookings: List[BookingSummary] = []
    total_bookings: int
    total_spent: float
