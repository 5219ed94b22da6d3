import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from jose import JWTError, jwt

from ..config import settings
from .errors import UnauthorizedError, ForbiddenError, InternalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminIdentity:
    """Verified identity handed over by the SSO provider"""
    id: str
    email: str
    domain: str


def verify_cron_secret(authorization: Optional[str], cron_secret: Optional[str] = None) -> None:
    """
    Verify the scheduler's shared secret (``Authorization: Bearer <secret>``).
    
    Raises InternalError when no secret is configured, so a missing setting
    never turns into an unauthenticated endpoint.
    """
    expected = settings.cron_secret if cron_secret is None else cron_secret
    if not expected:
        logger.error("CRON_SECRET not configured")
        raise InternalError("Cron secret not configured")
    
    presented = ""
    if authorization and authorization.startswith("Bearer "):
        presented = authorization[len("Bearer "):]
    
    if not hmac.compare_digest(presented.encode(), expected.encode()):
        logger.warning("Unauthorized cron job attempt")
        raise UnauthorizedError()


def decode_session_token(token: str) -> Optional[dict]:
    """Decode and verify an admin session JWT"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def verify_admin_session(token: Optional[str]) -> AdminIdentity:
    """Turn a session token into a verified identity or fail"""
    if not token:
        raise UnauthorizedError("Authentication required")
    
    payload = decode_session_token(token)
    if not payload or not payload.get("sub") or not payload.get("email"):
        raise UnauthorizedError("Authentication required")
    
    email = str(payload["email"]).lower()
    # Google Workspace puts the hosted domain in "hd"; fall back to the address
    domain = str(payload.get("hd") or email.rpartition("@")[2]).lower()
    return AdminIdentity(id=str(payload["sub"]), email=email, domain=domain)


def is_allowed_domain(identity: AdminIdentity, allowed_domain: Optional[str] = None) -> bool:
    allowed = (settings.admin_allowed_domain if allowed_domain is None else allowed_domain).lower()
    return bool(allowed) and identity.domain == allowed


def require_allowed_domain(identity: AdminIdentity, allowed_domain: Optional[str] = None) -> AdminIdentity:
    if not is_allowed_domain(identity, allowed_domain):
        logger.warning(f"Admin access denied for user {identity.id} (domain {identity.domain})")
        raise ForbiddenError("Access denied: must be from the authorized domain")
    return identity
