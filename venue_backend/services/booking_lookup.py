import logging
import secrets
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.booking import Booking
from ..utils.errors import InternalError
from ..utils.logging_config import token_prefix

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
MAX_TOKEN_LENGTH = 128


def generate_response_token() -> str:
    """Opaque, unguessable capability token"""
    return secrets.token_hex(TOKEN_BYTES)


def get_booking_by_token(db: Session, token: Optional[str], now: Optional[int] = None) -> Optional[Booking]:
    """
    Resolve a capability token to its booking.
    
    Unknown, malformed and expired tokens all come back as None.
    """
    if not token or len(token) > MAX_TOKEN_LENGTH:
        return None
    now = int(time.time()) if now is None else now
    
    try:
        booking = db.query(Booking).filter(Booking.response_token == token).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Token lookup failed for {token_prefix(token)}: {e}")
        raise InternalError() from e
    
    if booking is None or not booking.token_is_valid(now):
        return None
    return booking


def get_booking_by_id(db: Session, booking_id: str) -> Optional[Booking]:
    try:
        return db.query(Booking).filter(Booking.id == booking_id).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Booking lookup failed for {booking_id}: {e}")
        raise InternalError() from e
