"""
Booking Digest System

Sends daily/weekly digest emails with booking statistics to the operations
address. Both go through the dedup ledger, so a cron that fires twice in
the window sends one digest.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking
from ..models.email_log import EmailType
from ..utils.errors import InternalError, ValidationError
from ..utils.logging_config import get_logger
from .email_templates import render_digest
from .mail_transport import MailTransport
from .notification_dispatcher import NotificationDispatcher, STATUS_SENT

logger = get_logger(__name__)

DAY = 24 * 60 * 60
RECENT_BOOKINGS_LIMIT = 20

DIGEST_KINDS = {
    "daily": EmailType.DIGEST_DAILY,
    "weekly": EmailType.DIGEST_WEEKLY,
}


@dataclass
class DigestStats:
    status_counts: Dict[str, int]
    total: int
    new_today: int
    new_week: int
    recent: List[Booking]


def collect_digest_stats(db: Session, now: int, recent_since: int) -> DigestStats:
    rows = db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
    status_counts = {(s.value if hasattr(s, "value") else s): count for s, count in rows}
    
    new_today = db.query(func.count(Booking.id)).filter(Booking.created_at >= now - DAY).scalar() or 0
    new_week = db.query(func.count(Booking.id)).filter(Booking.created_at >= now - 7 * DAY).scalar() or 0
    
    recent = (
        db.query(Booking)
        .filter(Booking.created_at >= recent_since)
        .order_by(Booking.created_at.desc())
        .limit(RECENT_BOOKINGS_LIMIT)
        .all()
    )
    
    return DigestStats(
        status_counts=status_counts,
        total=sum(status_counts.values()),
        new_today=new_today,
        new_week=new_week,
        recent=recent,
    )


async def send_booking_digest(
    db: Session,
    kind: str,
    now: Optional[int] = None,
    transport: Optional[MailTransport] = None,
    recipient: Optional[str] = None,
) -> bool:
    """
    Build and send one digest. Returns False when it was already sent in the window.
    
    Raises:
        ValidationError: unknown digest kind
        InternalError: no operations address configured, or stats query failed
        ExternalServiceError: the mail transport failed
    """
    if kind not in DIGEST_KINDS:
        raise ValidationError(f"Unknown digest type: {kind}")
    email_type = DIGEST_KINDS[kind]
    
    recipient = recipient or settings.operations_email
    if not recipient:
        logger.error("RESERVATION_EMAIL not configured, cannot send digest")
        raise InternalError("Digest recipient not configured")
    
    now = int(time.time()) if now is None else now
    period = DAY if kind == "daily" else 7 * DAY
    
    try:
        stats = collect_digest_stats(db, now, recent_since=now - period)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to collect {kind} digest stats: {e}")
        raise InternalError("Failed to collect booking statistics") from e
    
    generated = datetime.fromtimestamp(now, tz=timezone.utc).strftime("%A, %d %B %Y")
    title = "Daily Booking Digest" if kind == "daily" else "Weekly Booking Digest"
    period_label = generated if kind == "daily" else f"7 days ending {generated}"
    body = render_digest(
        title,
        period_label,
        stats.status_counts,
        stats.total,
        stats.new_today,
        stats.new_week,
        stats.recent,
    )
    
    dispatcher = NotificationDispatcher(db, transport)
    sent = await dispatcher.send_once(
        None, email_type.value, STATUS_SENT, recipient, f"{title} - {generated}", body, now=now
    )
    
    if sent:
        logger.info(f"{title} sent ({stats.total} bookings)")
    else:
        logger.info(f"{title} already sent in this window, skipping")
    return sent


async def send_daily_booking_digest(db: Session, now: Optional[int] = None, transport: Optional[MailTransport] = None) -> bool:
    return await send_booking_digest(db, "daily", now=now, transport=transport)


async def send_weekly_booking_digest(db: Session, now: Optional[int] = None, transport: Optional[MailTransport] = None) -> bool:
    return await send_booking_digest(db, "weekly", now=now, transport=transport)
