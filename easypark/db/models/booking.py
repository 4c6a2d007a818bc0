"""Booking, BookingSlot and BookingStatusHistory models."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from easypark.db.base import Base, TimestampMixin
from easypark.db.enums import BookingStatus, SlotType, check_in


class Booking(TimestampMixin, Base):
    """Reservation of one or more slots over a time range."""

    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vehicle_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("vehicles.id", ondelete="SET NULL"),
        nullable=True,
    )
    # Wall-clock times of the property, stored without timezone
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    status = Column(String(16), nullable=False, default=BookingStatus.PENDING.value)
    parking_type = Column(String(16), nullable=False, default=SlotType.NORMAL.value)
    booking_type = Column(String(16), nullable=False, default=SlotType.NORMAL.value)
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(check_in("status", BookingStatus), name="check_booking_status"),
        CheckConstraint("end_time > start_time", name="check_booking_window"),
    )

    @property
    def booking_number(self) -> str:
        return f"BK-{self.id.hex[-6:].upper()}"

    # Relationships
    customer = relationship("User", foreign_keys=[customer_id])
    creator = relationship("User", foreign_keys=[created_by])
    vehicle = relationship("Vehicle")
    property = relationship("Property", back_populates="bookings")
    booking_slots = relationship(
        "BookingSlot",
        back_populates="booking",
        cascade="all, delete-orphan",
    )
    payments = relationship(
        "Payment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Payment.created_at.desc()",
    )
    payment_summary = relationship(
        "PaymentSummary",
        back_populates="booking",
        cascade="all, delete-orphan",
        uselist=False,
    )
    status_history = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingStatusHistory.changed_at",
    )
    counter_transactions = relationship(
        "CounterTransaction",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="CounterTransaction.created_at.desc()",
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, status={self.status}, start={self.start_time})>"


class BookingSlot(Base):
    """Link between a booking and one of its slots."""

    __tablename__ = "booking_slots"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slot_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("parking_slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (UniqueConstraint("booking_id", "slot_id", name="uq_booking_slot"),)

    # Relationships
    booking = relationship("Booking", back_populates="booking_slots")
    slot = relationship("ParkingSlot", back_populates="booking_slots")
    wash_job = relationship(
        "WashJob",
        back_populates="booking_slot",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self):
        return f"<BookingSlot(booking_id={self.booking_id}, slot_id={self.slot_id})>"


class BookingStatusHistory(Base):
    """Audit row written on every booking status change."""

    __tablename__ = "booking_status_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_status = Column(String(16), nullable=True)
    new_status = Column(String(16), nullable=False)
    changed_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    note = Column(Text, nullable=True)
    changed_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"eager_defaults": True}

    # Relationships
    booking = relationship("Booking", back_populates="status_history")

    def __repr__(self):
        return f"<BookingStatusHistory({self.old_status} -> {self.new_status})>"
