"""
Booking Reminder System

Sends reminder emails to guests before their reservation starts:
- about 7 days before (window [6.5 d, 7.5 d) by default)
- about 24 hours before (window [22 h, 26 h) by default)

Windows are half-open and at most as wide as the dedup window, so an
hourly trigger fires each reminder once.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking, BookingStatus
from ..models.email_log import EmailType
from ..utils.errors import BookingServiceError, InternalError
from ..utils.logging_config import get_logger
from .email_templates import render_reminder
from .mail_transport import MailTransport
from .notification_dispatcher import NotificationDispatcher, STATUS_SENT

logger = get_logger(__name__)

HOUR = 60 * 60
DAY = 24 * HOUR


@dataclass
class ReminderResult:
    sent_7day: int = 0
    sent_24hour: int = 0
    errors: List[dict] = field(default_factory=list)
    
    def to_dict(self) -> dict:
        return {
            "sent_7day": self.sent_7day,
            "sent_24hour": self.sent_24hour,
            "errors": self.errors,
        }


def reminder_window(now: int, offset_hours: int, half_width_hours: int) -> Tuple[int, int]:
    """Half-open [start, end) range of start dates that are due a reminder"""
    return (
        now + (offset_hours - half_width_hours) * HOUR,
        now + (offset_hours + half_width_hours) * HOUR,
    )


def find_bookings_starting_between(db: Session, window_start: int, window_end: int) -> List[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.status == BookingStatus.ACCEPTED.value,
            Booking.start_date >= window_start,
            Booking.start_date < window_end,
        )
        .order_by(Booking.start_date.asc())
        .all()
    )


def _error_descriptor(booking_id: str, error: Exception) -> dict:
    message = error.message if isinstance(error, BookingServiceError) else type(error).__name__
    return {"booking_id": booking_id, "error": message}


async def _send_reminders_for_window(
    dispatcher: NotificationDispatcher,
    bookings: List[Booking],
    email_type: EmailType,
    now: int,
    result: ReminderResult,
) -> int:
    sent = 0
    # Read ids up front; a failed item rolls back and expires the rest
    booking_ids = [booking.id for booking in bookings]
    for booking, booking_id in zip(bookings, booking_ids):
        try:
            days_until_start = max(round((booking.start_date - now) / DAY), 1)
            subject, body = render_reminder(booking, days_until_start)
            if await dispatcher.send_once(
                booking_id, email_type.value, STATUS_SENT, booking.email, subject, body, now=now
            ):
                sent += 1
        except Exception as e:
            dispatcher.db.rollback()
            # One guest's failure never blocks the others
            logger.error(f"Failed to send {email_type.value} reminder for booking {booking_id}: {e}")
            result.errors.append(_error_descriptor(booking_id, e))
    return sent


async def send_booking_reminders(
    db: Session,
    now: Optional[int] = None,
    transport: Optional[MailTransport] = None,
) -> ReminderResult:
    """
    Send 7-day and 24-hour reminders for accepted bookings.
    
    Raises:
        InternalError: the bookings due a reminder could not be loaded
    """
    now = int(time.time()) if now is None else now
    dispatcher = NotificationDispatcher(db, transport)
    result = ReminderResult()
    
    seven_day_window = reminder_window(
        now, settings.reminder_7day_offset_hours, settings.reminder_7day_half_width_hours
    )
    one_day_window = reminder_window(
        now, settings.reminder_24h_offset_hours, settings.reminder_24h_half_width_hours
    )
    
    try:
        seven_day_bookings = find_bookings_starting_between(db, *seven_day_window)
        one_day_bookings = find_bookings_starting_between(db, *one_day_window)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to load bookings for reminders: {e}")
        raise InternalError("Failed to load bookings for reminders") from e
    
    result.sent_7day = await _send_reminders_for_window(
        dispatcher, seven_day_bookings, EmailType.REMINDER_7DAY, now, result
    )
    result.sent_24hour = await _send_reminders_for_window(
        dispatcher, one_day_bookings, EmailType.REMINDER_24H, now, result
    )
    
    logger.info(
        f"Reminders: {result.sent_7day} 7-day, {result.sent_24hour} 24-hour, {len(result.errors)} errors"
    )
    return result
