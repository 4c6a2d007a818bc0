"""CounterTransaction model."""

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from easypark.db.base import Base
from easypark.db.enums import CounterAction, check_in


class CounterTransaction(Base):
    """Audit log entry written by front-desk staff acting on a booking."""

    __tablename__ = "counter_transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    counter_user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action = Column(String(32), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint(check_in("action", CounterAction), name="check_counter_action"),
    )

    # Relationships
    counter_user = relationship("User")
    booking = relationship("Booking", back_populates="counter_transactions")

    def __repr__(self):
        return f"<CounterTransaction(id={self.id}, action={self.action})>"
