import logging
import time
from typing import Optional

from sqlalchemy.orm import Session

from .email_tracking import has_email_been_sent, log_email_sent, release_email_log
from .mail_transport import MailTransport
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

STATUS_SENT = "sent"


class NotificationDispatcher:
    """
    Dedup-guarded send path shared by reminders, digests and status emails.
    
    The ledger row is claimed before the send, so of two racing passes only
    the one whose insert wins talks to the mail server. A failed send
    releases its claim and the next pass retries.
    """
    
    def __init__(self, db: Session, transport: Optional[MailTransport] = None):
        self.db = db
        self.transport = transport or MailTransport()
    
    async def send_once(
        self,
        booking_id: Optional[str],
        email_type: str,
        status: str,
        recipient: str,
        subject: str,
        body: str,
        now: Optional[int] = None,
    ) -> bool:
        """Send unless this key was already sent in the window. Returns True if sent."""
        now = int(time.time()) if now is None else now
        
        if has_email_been_sent(self.db, booking_id, email_type, status, recipient, now=now):
            return False
        
        claim = log_email_sent(self.db, booking_id, email_type, status, recipient, now=now)
        if claim is None:
            # Another pass logged it between our check and our insert
            return False
        
        try:
            await self.transport.send(recipient, subject, body)
        except Exception:
            release_email_log(self.db, claim)
            raise
        
        logger.email_sent(booking_id, email_type, recipient)
        return True
    
    async def send(self, recipient: str, subject: str, body: str) -> None:
        """Unguarded send, for messages that are unique by construction"""
        await self.transport.send(recipient, subject, body)
        logger.log_with_context(logging.INFO, f"Email sent: {subject}")
