from typing import Optional

from fastapi import Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi import Depends, Request

from .security import AdminIdentity, verify_admin_session, require_allowed_domain, verify_cron_secret

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AdminIdentity:
    """Admin from a Bearer header or the session cookie, restricted to the allowed domain"""
    token = credentials.credentials if credentials else request.cookies.get("admin_session")
    identity = verify_admin_session(token)
    return require_allowed_domain(identity)


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    verify_cron_secret(authorization)
