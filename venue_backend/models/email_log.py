"""
Email dedup ledger.

One row per delivered notification. The unique constraint over the key tuple
plus the window bucket is what keeps concurrent passes (separate processes,
no shared memory) from logging the same notification twice.
"""

import uuid
import enum
from sqlalchemy import Column, String, BigInteger, Integer, UniqueConstraint, Index
from ..database import Base


class EmailType(str, enum.Enum):
    REMINDER_7DAY = "reminder_7day"
    REMINDER_24H = "reminder_24h"
    DIGEST_DAILY = "digest_daily"
    DIGEST_WEEKLY = "digest_weekly"
    STATUS_CHANGE = "status_change"


# Stands in for a NULL booking id inside the unique key (NULLs never collide)
NO_BOOKING_KEY = ""


class EmailSentLog(Base):
    __tablename__ = "email_sent_log"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), nullable=True, index=True)
    booking_key = Column(String(36), nullable=False, default=NO_BOOKING_KEY)
    email_type = Column(String(50), nullable=False)
    status = Column(String(50), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    sent_at = Column(BigInteger, nullable=False)
    window_bucket = Column(Integer, nullable=False)
    
    __table_args__ = (
        UniqueConstraint(
            "booking_key", "email_type", "status", "recipient_email", "window_bucket",
            name="uq_email_sent_log_key_window",
        ),
        Index("ix_email_sent_log_lookup", "booking_key", "email_type", "status", "recipient_email", "sent_at"),
    )
    
    def __repr__(self):
        return f"<EmailSentLog {self.email_type}/{self.status} booking={self.booking_id}>"
