"""WashJob model."""

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from easypark.db.base import Base, TimestampMixin
from easypark.db.enums import WashStatus, check_in


class WashJob(TimestampMixin, Base):
    """Washer task spawned for every booked car-wash slot."""

    __tablename__ = "wash_jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    booking_slot_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("booking_slots.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    washer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status = Column(String(16), nullable=False, default=WashStatus.PENDING.value)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    note = Column(Text, nullable=True)

    __table_args__ = (CheckConstraint(check_in("status", WashStatus), name="check_wash_status"),)

    # Relationships
    booking_slot = relationship("BookingSlot", back_populates="wash_job")
    washer = relationship("User")

    def __repr__(self):
        return f"<WashJob(id={self.id}, status={self.status})>"
