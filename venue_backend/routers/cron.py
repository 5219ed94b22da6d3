"""
Scheduler-triggered endpoints.

The external cron caller is at-least-once and may overlap with itself; every
operation here is safe to repeat. Each call must present the shared secret
and finish inside CRON_TIMEOUT_SECONDS.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db, get_session_factory
from ..schemas.jobs import AutoUpdateResponse, ReminderResponse, DigestResponse
from ..services.scheduled_jobs import run_auto_update, run_reminders, run_digest, AutoUpdateRun
from ..utils.dependencies import require_cron_secret
from ..utils.timeouts import with_timeout

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"],
    dependencies=[Depends(require_cron_secret)],
)


def auto_update_response(run: AutoUpdateRun) -> AutoUpdateResponse:
    payload = run.result.to_dict()
    return AutoUpdateResponse(
        cancelled=payload["cancelled"],
        finished=payload["finished"],
        scanned=payload["scanned"],
        remaining=payload["remaining"],
        updated_bookings=payload["updated_bookings"],
        notifications_sent=run.notifications.guest_emails_sent,
    )


def digest_response(kind: str, sent: bool) -> DigestResponse:
    return DigestResponse(
        type=kind,
        sent=sent,
        message=f"{kind.capitalize()} digest sent" if sent else f"{kind.capitalize()} digest already sent",
    )


@router.api_route("/auto-update-bookings", methods=["GET", "POST"], response_model=AutoUpdateResponse)
async def cron_auto_update_bookings(session_factory=Depends(get_session_factory)):
    """Cancel stale bookings and finish completed ones"""
    logger.info("Auto-update bookings cron job started")
    run = await with_timeout(
        run_auto_update(session_factory), settings.cron_timeout_seconds, "Auto-update", shield=True
    )
    return auto_update_response(run)


@router.api_route("/reminders", methods=["GET", "POST"], response_model=ReminderResponse)
async def cron_reminders(db: Session = Depends(get_db)):
    result = await with_timeout(run_reminders(db), settings.cron_timeout_seconds, "Reminders")
    return ReminderResponse(**result.to_dict())


@router.api_route("/daily-digest", methods=["GET", "POST"], response_model=DigestResponse)
async def cron_daily_digest(db: Session = Depends(get_db)):
    sent = await with_timeout(run_digest(db, "daily"), settings.cron_timeout_seconds, "Daily digest")
    return digest_response("daily", sent)


@router.api_route("/weekly-digest", methods=["GET", "POST"], response_model=DigestResponse)
async def cron_weekly_digest(db: Session = Depends(get_db)):
    sent = await with_timeout(run_digest(db, "weekly"), settings.cron_timeout_seconds, "Weekly digest")
    return digest_response("weekly", sent)
