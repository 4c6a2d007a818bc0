"""Property model."""

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from easypark.db.base import Base, TimestampMixin
from easypark.db.enums import PropertyStatus, check_in


class Property(TimestampMixin, Base):
    """Parking location owned by a land owner."""

    __tablename__ = "properties"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    owner_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    property_name = Column(String(255), nullable=False)
    address = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    price_per_hour = Column(Numeric(10, 2), nullable=False, default=300)
    price_per_day = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(8), nullable=False, default="LKR")
    status = Column(String(16), nullable=False, default=PropertyStatus.ACTIVATED.value)

    # Denormalised slot counters, recomputed whenever slots change
    total_slots = Column(Integer, nullable=False, default=0)
    total_normal_slots = Column(Integer, nullable=False, default=0)
    total_ev_slots = Column(Integer, nullable=False, default=0)
    total_car_wash_slots = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(check_in("status", PropertyStatus), name="check_property_status"),
    )

    # Relationships
    owner = relationship("User")
    slots = relationship(
        "ParkingSlot",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="ParkingSlot.slot_number",
    )
    bookings = relationship(
        "Booking",
        back_populates="property",
        cascade="all, delete-orphan",
    )

    @property
    def is_activated(self) -> bool:
        return self.status == PropertyStatus.ACTIVATED.value

    def __repr__(self):
        return f"<Property(id={self.id}, name={self.property_name})>"
