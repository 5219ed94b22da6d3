"""
Email Tracking (dedup ledger)

Prevents duplicate notifications by recording every send in email_sent_log.
The storage-level unique constraint is the only concurrency control: two
passes racing on the same key both try to insert, exactly one wins.
"""

import logging
import time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.email_log import EmailSentLog, NO_BOOKING_KEY
from ..utils.logging_config import mask_email

logger = logging.getLogger(__name__)


def _booking_key(booking_id: Optional[str]) -> str:
    return booking_id or NO_BOOKING_KEY


def _window_seconds(window_seconds: Optional[int]) -> int:
    return settings.email_dedup_window_seconds if window_seconds is None else window_seconds


def has_email_been_sent(
    db: Session,
    booking_id: Optional[str],
    email_type: str,
    status: str,
    recipient_email: str,
    now: Optional[int] = None,
    window_seconds: Optional[int] = None,
) -> bool:
    """Check for a ledger row with this exact key inside the rolling window"""
    now = int(time.time()) if now is None else now
    since = now - _window_seconds(window_seconds)
    
    existing = db.query(EmailSentLog.id).filter(
        EmailSentLog.booking_key == _booking_key(booking_id),
        EmailSentLog.email_type == email_type,
        EmailSentLog.status == status,
        EmailSentLog.recipient_email == recipient_email,
        EmailSentLog.sent_at > since,
    ).first()
    
    return existing is not None


def log_email_sent(
    db: Session,
    booking_id: Optional[str],
    email_type: str,
    status: str,
    recipient_email: str,
    now: Optional[int] = None,
    window_seconds: Optional[int] = None,
) -> Optional[EmailSentLog]:
    """
    Insert a ledger row.
    
    A uniqueness violation means another writer already logged this key,
    which counts as success: returns None instead of raising.
    """
    now = int(time.time()) if now is None else now
    entry = EmailSentLog(
        booking_id=booking_id,
        booking_key=_booking_key(booking_id),
        email_type=email_type,
        status=status,
        recipient_email=recipient_email,
        sent_at=now,
        window_bucket=now // _window_seconds(window_seconds),
    )
    
    try:
        db.add(entry)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            f"Email already logged: {email_type}/{status} for booking {booking_id} "
            f"to {mask_email(recipient_email)}"
        )
        return None
    
    return entry


def release_email_log(db: Session, entry: EmailSentLog) -> None:
    """Drop a claim whose send failed so the next pass can retry it"""
    db.query(EmailSentLog).filter(EmailSentLog.id == entry.id).delete(synchronize_session=False)
    db.commit()


def prune_email_log(db: Session, now: Optional[int] = None, retention_seconds: Optional[int] = None) -> int:
    """Delete ledger rows older than the retention period (defaults to 7 windows)"""
    now = int(time.time()) if now is None else now
    retention = retention_seconds if retention_seconds is not None else 7 * _window_seconds(None)
    
    deleted = db.query(EmailSentLog).filter(
        EmailSentLog.sent_at < now - retention
    ).delete(synchronize_session=False)
    db.commit()
    
    if deleted:
        logger.info(f"Pruned {deleted} email log rows")
    return deleted
