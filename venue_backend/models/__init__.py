# Models package
from .booking import Booking, BookingStatus, BookingStatusHistory, TERMINAL_STATUSES
from .email_log import EmailSentLog, EmailType, NO_BOOKING_KEY

__all__ = [
    "Booking", "BookingStatus", "BookingStatusHistory", "TERMINAL_STATUSES",
    "EmailSentLog", "EmailType", "NO_BOOKING_KEY",
]
