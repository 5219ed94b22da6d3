"""
Secure access to deposit evidence images.

Evidence lives in blob storage and must never be reachable through a public
URL. Callers get bytes and a content type, never the storage URL. Every
"can't serve it" outcome (unknown token, expired token, missing booking,
no evidence) raises the same NotFoundError so a token can't be probed.
"""

import logging
import time
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking
from ..utils.errors import NotFoundError
from ..utils.logging_config import get_logger, token_prefix
from .blob_client import BlobClient, BlobContent
from .booking_lookup import get_booking_by_token, get_booking_by_id

logger = get_logger(__name__)

EVIDENCE_NOT_FOUND = "Deposit evidence not found"


def evidence_not_found() -> NotFoundError:
    return NotFoundError(EVIDENCE_NOT_FOUND)


def deposit_image_headers(cache_seconds: Optional[int] = None) -> Dict[str, str]:
    max_age = settings.deposit_image_cache_seconds if cache_seconds is None else cache_seconds
    return {
        "Cache-Control": f"private, max-age={max_age}",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
    }


async def resolve_deposit_image(booking: Optional[Booking], blob_client: Optional[BlobClient] = None) -> BlobContent:
    if booking is None or not booking.has_deposit_evidence:
        raise evidence_not_found()
    
    client = blob_client or BlobClient()
    content = await client.fetch(booking.deposit_evidence_url)
    logger.log_with_context(
        logging.INFO,
        "Deposit image proxied",
        entity_type="booking",
        entity_id=booking.id,
        content_type=content.content_type,
        size=len(content.data),
    )
    return content


async def get_deposit_image_by_token(
    db: Session,
    token: str,
    blob_client: Optional[BlobClient] = None,
    now: Optional[int] = None,
) -> BlobContent:
    now = int(time.time()) if now is None else now
    booking = get_booking_by_token(db, token, now=now)
    if booking is None:
        logger.warning(f"Deposit image rejected: invalid or expired token {token_prefix(token)}")
        raise evidence_not_found()
    return await resolve_deposit_image(booking, blob_client)


async def get_deposit_image_for_admin(
    db: Session,
    booking_id: str,
    blob_client: Optional[BlobClient] = None,
) -> BlobContent:
    booking = get_booking_by_id(db, booking_id)
    if booking is None:
        logger.warning(f"Admin deposit image rejected: booking {booking_id} not found")
        raise evidence_not_found()
    return await resolve_deposit_image(booking, blob_client)
