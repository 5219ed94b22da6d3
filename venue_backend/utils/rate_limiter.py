"""
Rate Limiter Configuration

Uses slowapi with in-memory storage by default; point RATE_LIMIT_STORAGE_URI
at Redis when running several instances.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from ..config import settings


def get_real_client_ip(request: Request) -> str:
    """Get real client IP behind reverse proxy"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_real_client_ip,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=["100/minute"]
)


RATE_LIMITS = {
    # Token guessing protection
    "deposit_image_token": "30/minute",
    "deposit_image_admin": "120/minute",
    # Manual admin triggers
    "admin_trigger": "10/minute",
}


def get_rate_limit(operation: str) -> str:
    """Get rate limit for a specific operation."""
    return RATE_LIMITS.get(operation, "100/minute")
