"""
Side effects of a reconciliation pass: tell auto-cancelled guests, and send
operations one summary of everything that changed. Failures here are logged
and never alter the pass's result.

Guest emails are driven by the status history, not by the pass result: a
cancellation committed by a pass that timed out before notifying still has
its history row, and the next pass sends the email. The dedup ledger keeps
every guest at one email.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking, BookingStatus, BookingStatusHistory
from ..models.email_log import EmailType
from ..utils.logging_config import get_logger
from .booking_auto_updater import AutoUpdateResult, SYSTEM_ACTOR
from .email_templates import render_status_change, render_auto_update_summary
from .mail_transport import MailTransport
from .notification_dispatcher import NotificationDispatcher

logger = get_logger(__name__)


@dataclass
class NotifyResult:
    guest_emails_sent: int = 0
    summary_sent: bool = False
    errors: List[dict] = field(default_factory=list)


def find_recent_auto_cancellations(db: Session, now: int) -> List[Tuple[Booking, str]]:
    """
    Bookings the system cancelled inside the dedup window, with the reason.

    Any email already sent for one of these is still inside the window too,
    so the ledger suppresses it.
    """
    since = now - settings.email_dedup_window_seconds
    rows = (
        db.query(Booking, BookingStatusHistory.change_reason)
        .join(BookingStatusHistory, BookingStatusHistory.booking_id == Booking.id)
        .filter(
            BookingStatusHistory.new_status == BookingStatus.CANCELLED.value,
            BookingStatusHistory.changed_by == SYSTEM_ACTOR,
            BookingStatusHistory.created_at > since,
            BookingStatusHistory.created_at <= now,
        )
        .order_by(BookingStatusHistory.created_at.asc())
        .all()
    )
    return [(booking, reason or "") for booking, reason in rows]


async def notify_auto_update(
    db: Session,
    result: AutoUpdateResult,
    now: int,
    transport: Optional[MailTransport] = None,
) -> NotifyResult:
    notify = NotifyResult()
    dispatcher = NotificationDispatcher(db, transport)

    try:
        cancellations = find_recent_auto_cancellations(db, now)
        # Read ids while rows are fresh; a failed item rolls back and expires them
        booking_ids = [booking.id for booking, _ in cancellations]
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to load auto-cancelled bookings: {e}")
        notify.errors.append({"booking_id": None, "error": type(e).__name__})
        cancellations, booking_ids = [], []

    for (booking, reason), booking_id in zip(cancellations, booking_ids):
        try:
            subject, body = render_status_change(booking, BookingStatus.CANCELLED, reason)
            if await dispatcher.send_once(
                booking_id,
                EmailType.STATUS_CHANGE.value,
                BookingStatus.CANCELLED.value,
                booking.email,
                subject,
                body,
                now=now,
            ):
                notify.guest_emails_sent += 1
        except Exception as e:
            db.rollback()
            logger.log_with_context(
                logging.ERROR,
                f"Failed to send cancellation email for booking {booking_id}: {e}",
                entity_type="booking",
                entity_id=booking_id,
            )
            notify.errors.append({"booking_id": booking_id, "error": type(e).__name__})

    if not result.transitions:
        return notify

    recipient = settings.operations_email
    if not recipient:
        logger.warning("RESERVATION_EMAIL not configured, skipping auto-update summary")
        return notify

    try:
        subject, body = render_auto_update_summary(result.to_dict()["updated_bookings"])
        await dispatcher.send(recipient, subject, body)
        notify.summary_sent = True
    except Exception as e:
        logger.error(f"Failed to send auto-update summary: {e}")
        notify.errors.append({"booking_id": None, "error": type(e).__name__})

    return notify
