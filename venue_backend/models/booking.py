import uuid
import enum
from sqlalchemy import Column, String, BigInteger, Text, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from ..database import Base


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    PENDING_DEPOSIT = "pending_deposit"
    PAID_DEPOSIT = "paid_deposit"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"
    FINISHED = "finished"


TERMINAL_STATUSES = frozenset({
    BookingStatus.REJECTED,
    BookingStatus.CANCELLED,
    BookingStatus.FINISHED,
})


def status_column_type() -> Enum:
    """Closed enumeration at the storage boundary: unknown values raise instead of loading"""
    return Enum(
        BookingStatus,
        name="booking_status",
        native_enum=False,
        length=20,
        validate_strings=True,
        values_callable=lambda statuses: [s.value for s in statuses],
    )


class Booking(Base):
    __tablename__ = "bookings"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=True)
    
    # Unix timestamps (seconds)
    start_date = Column(BigInteger, nullable=False)
    end_date = Column(BigInteger, nullable=True)
    
    status = Column(status_column_type(), nullable=False, default=BookingStatus.PENDING)
    
    # Capability token for guest access, not tied to a session
    response_token = Column(String(64), nullable=False, unique=True)
    token_expires_at = Column(BigInteger, nullable=True)
    
    # Blob storage URL, never returned to callers
    deposit_evidence_url = Column(Text, nullable=True)
    checked_in_at = Column(BigInteger, nullable=True)
    
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
    
    history = relationship(
        "BookingStatusHistory",
        back_populates="booking",
        order_by="BookingStatusHistory.created_at",
    )
    
    __table_args__ = (
        Index("ix_bookings_status_start_date", "status", "start_date"),
    )
    
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
    
    @property
    def has_deposit_evidence(self) -> bool:
        return bool(self.deposit_evidence_url)
    
    def token_is_valid(self, now: int) -> bool:
        return self.token_expires_at is None or self.token_expires_at >= now
    
    def __repr__(self):
        return f"<Booking {self.id} {self.status}>"


class BookingStatusHistory(Base):
    """Append-only audit trail of status changes"""
    __tablename__ = "booking_status_history"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String(20), nullable=False)
    new_status = Column(String(20), nullable=False)
    changed_by = Column(String(100), nullable=False, default="system")
    change_reason = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False)
    
    booking = relationship("Booking", back_populates="history")
