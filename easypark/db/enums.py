"""Enumerated column values."""

from enum import Enum


class RoleName(str, Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    LANDOWNER = "LANDOWNER"
    WASHER = "WASHER"
    COUNTER = "COUNTER"


class PropertyStatus(str, Enum):
    ACTIVATED = "ACTIVATED"
    NOT_ACTIVATED = "NOT_ACTIVATED"


class SlotType(str, Enum):
    NORMAL = "NORMAL"
    EV = "EV"
    CAR_WASH = "CAR_WASH"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    CASH = "CASH"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class GatewayStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class WashStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"


class CounterAction(str, Enum):
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_UPDATED = "BOOKING_UPDATED"


def check_in(column: str, enum_cls) -> str:
    """SQL CHECK expression restricting ``column`` to the enum's values."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
