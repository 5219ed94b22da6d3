"""
Manual triggers for admins (same operations the scheduler runs).
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db, get_session_factory
from ..schemas.jobs import AutoUpdateResponse, ReminderResponse, DigestResponse
from ..services.booking_digest import DIGEST_KINDS
from ..services.scheduled_jobs import run_auto_update, run_reminders, run_digest
from ..utils.dependencies import get_current_admin
from ..utils.errors import ValidationError
from ..utils.rate_limiter import limiter, get_rate_limit
from ..utils.security import AdminIdentity
from ..utils.timeouts import with_timeout
from .cron import auto_update_response, digest_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/bookings", tags=["Admin"])


@router.post("/auto-update", response_model=AutoUpdateResponse)
@limiter.limit(get_rate_limit("admin_trigger"))
async def admin_auto_update(
    request: Request,
    session_factory=Depends(get_session_factory),
    admin: AdminIdentity = Depends(get_current_admin),
):
    logger.info(f"Manual auto-update triggered by admin {admin.id}")
    run = await with_timeout(
        run_auto_update(session_factory), settings.cron_timeout_seconds, "Auto-update", shield=True
    )
    return auto_update_response(run)


@router.post("/reminders", response_model=ReminderResponse)
@limiter.limit(get_rate_limit("admin_trigger"))
async def admin_reminders(
    request: Request,
    db: Session = Depends(get_db),
    admin: AdminIdentity = Depends(get_current_admin),
):
    logger.info(f"Manual reminders triggered by admin {admin.id}")
    result = await with_timeout(run_reminders(db), settings.cron_timeout_seconds, "Reminders")
    return ReminderResponse(**result.to_dict())


@router.post("/digest", response_model=DigestResponse)
@limiter.limit(get_rate_limit("admin_trigger"))
async def admin_digest(
    request: Request,
    digest_type: str = Query("daily", alias="type"),
    db: Session = Depends(get_db),
    admin: AdminIdentity = Depends(get_current_admin),
):
    if digest_type not in DIGEST_KINDS:
        raise ValidationError("Digest type must be 'daily' or 'weekly'")
    logger.info(f"Manual {digest_type} digest triggered by admin {admin.id}")
    sent = await with_timeout(run_digest(db, digest_type), settings.cron_timeout_seconds, "Digest")
    return digest_response(digest_type, sent)
