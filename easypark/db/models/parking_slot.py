"""ParkingSlot model."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from easypark.db.base import Base
from easypark.db.enums import SlotType, check_in


class ParkingSlot(Base):
    """Individually bookable parking space within a property."""

    __tablename__ = "parking_slots"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    property_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slot_number = Column(String(32), nullable=False)
    slot_type = Column(String(16), nullable=False, default=SlotType.NORMAL.value)
    # Inactive slots are in maintenance and never bookable
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        UniqueConstraint("property_id", "slot_number", name="uq_slot_number_per_property"),
        CheckConstraint(check_in("slot_type", SlotType), name="check_slot_type"),
    )

    # Relationships
    property = relationship("Property", back_populates="slots")
    booking_slots = relationship(
        "BookingSlot",
        back_populates="slot",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<ParkingSlot(id={self.id}, number={self.slot_number}, type={self.slot_type})>"
