"""Vehicle model."""

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from easypark.db.base import Base, TimestampMixin


class Vehicle(TimestampMixin, Base):
    """Vehicle registered to a customer."""

    __tablename__ = "vehicles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vehicle_number = Column(String(32), nullable=False, unique=True)
    type = Column(String(64), nullable=True)
    model = Column(String(128), nullable=True)
    color = Column(String(64), nullable=True)

    # Relationships
    user = relationship("User", back_populates="vehicles")

    def __repr__(self):
        return f"<Vehicle(id={self.id}, number={self.vehicle_number})>"
