"""Payment and PaymentSummary models."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from easypark.db.base import Base
from easypark.db.enums import GatewayStatus, PaymentMethod, PaymentStatus, check_in


class Payment(Base):
    """Single money movement against a booking."""

    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payer_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="LKR")
    method = Column(String(8), nullable=False)
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.UNPAID.value)
    gateway_status = Column(String(16), nullable=False, default=GatewayStatus.PENDING.value)
    gateway_provider = Column(String(64), nullable=True)
    transaction_id = Column(String(128), nullable=True)
    card_last4 = Column(String(4), nullable=True)
    card_brand = Column(String(32), nullable=True)
    card_exp_month = Column(Integer, nullable=True)
    card_exp_year = Column(Integer, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        CheckConstraint(check_in("method", PaymentMethod), name="check_payment_method"),
        CheckConstraint(check_in("payment_status", PaymentStatus), name="check_payment_status"),
        CheckConstraint(check_in("gateway_status", GatewayStatus), name="check_gateway_status"),
        CheckConstraint("amount >= 0", name="check_payment_amount"),
    )

    # Relationships
    booking = relationship("Booking", back_populates="payments")

    def __repr__(self):
        return f"<Payment(id={self.id}, amount={self.amount}, method={self.method})>"


class PaymentSummary(Base):
    """Running totals for a booking, refreshed after every payment change."""

    __tablename__ = "payment_summary"

    booking_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    online_paid = Column(Numeric(12, 2), nullable=False, default=0)
    cash_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance_due = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="LKR")
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __mapper_args__ = {"eager_defaults": True}

    # Relationships
    booking = relationship("Booking", back_populates="payment_summary")

    @property
    def paid_amount(self):
        return (self.online_paid or 0) + (self.cash_paid or 0)

    def __repr__(self):
        return f"<PaymentSummary(booking_id={self.booking_id}, balance={self.balance_due})>"
