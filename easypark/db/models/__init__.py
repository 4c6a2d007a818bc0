"""Database models package."""

from easypark.db.base import Base
from easypark.db.models.user import Role, User, user_roles
from easypark.db.models.property import Property
from easypark.db.models.parking_slot import ParkingSlot
from easypark.db.models.vehicle import Vehicle
from easypark.db.models.booking import Booking, BookingSlot, BookingStatusHistory
from easypark.db.models.payment import Payment, PaymentSummary
from easypark.db.models.wash_job import WashJob
from easypark.db.models.counter_transaction import CounterTransaction
from easypark.db.models.notification import Notification, PasswordResetToken

__all__ = [
    "Base",
    "Role",
    "User",
    "user_roles",
    "Property",
    "ParkingSlot",
    "Vehicle",
    "Booking",
    "BookingSlot",
    "BookingStatusHistory",
    "Payment",
    "PaymentSummary",
    "WashJob",
    "CounterTransaction",
    "Notification",
    "PasswordResetToken",
]
