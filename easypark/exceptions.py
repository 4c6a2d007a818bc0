"""Domain exceptions raised by the service layer.

Each exception carries the HTTP status it maps to; ``easypark.main`` installs
a single handler that renders them as ``{"detail": ...}`` responses.
"""

from typing import Optional


class EasyParkError(Exception):
    status_code = 400
    default_detail = "Request could not be processed."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class BookingConflict(EasyParkError):
    status_code = 409
    default_detail = "Selected slot(s) are already booked for that time"


class SlotUnavailable(EasyParkError):
    status_code = 400
    default_detail = "One or more selected slots are invalid for this property"


class PropertyNotBookable(EasyParkError):
    status_code = 400
    default_detail = "Cannot create booking for a non-activated property"


class InvalidBookingState(EasyParkError):
    status_code = 400
    default_detail = "Booking cannot be changed in its current state"


class PaymentFailed(EasyParkError):
    status_code = 402
    default_detail = "Payment processing failed"


class PaymentRejected(EasyParkError):
    status_code = 400
    default_detail = "Payment amount is not acceptable"


class VehicleConflict(EasyParkError):
    status_code = 409
    default_detail = "Vehicle number is already assigned to another customer"


class DuplicateAccount(EasyParkError):
    status_code = 409
    default_detail = "Email already registered"


class InvalidResetToken(EasyParkError):
    status_code = 400
    default_detail = "Invalid or expired reset token"


class RateLimited(EasyParkError):
    status_code = 429
    default_detail = "Too many attempts. Please try again later."


class InvalidBookingTime(EasyParkError):
    status_code = 400
    default_detail = "Booking start time cannot be in the past"


class SlotInUse(EasyParkError):
    status_code = 409
    default_detail = "Slot has active bookings and cannot be removed"
