"""
Entry points shared by the cron routes, the admin trigger routes and worker.py.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..utils.logging_config import get_logger
from .auto_update_notifier import notify_auto_update, NotifyResult
from .booking_auto_updater import AutoUpdateResult, reconcile_in_own_session
from .booking_digest import send_booking_digest
from .booking_reminders import send_booking_reminders, ReminderResult
from .mail_transport import MailTransport

logger = get_logger(__name__)


@dataclass
class AutoUpdateRun:
    result: AutoUpdateResult
    notifications: NotifyResult


async def run_auto_update(
    session_factory: Optional[Callable[[], Session]] = None,
    now: Optional[int] = None,
    transport: Optional[MailTransport] = None,
) -> AutoUpdateRun:
    """
    Reconcile, then notify. Each step opens its own session.

    Storage calls block, so the pass runs in a worker thread; that thread
    owns its session and closes it. Callers shield this whole unit so a
    timeout never separates the writes from their notifications.
    """
    session_factory = session_factory or SessionLocal
    now = int(time.time()) if now is None else now
    result = await asyncio.to_thread(reconcile_in_own_session, session_factory, now)

    db = session_factory()
    try:
        notifications = await notify_auto_update(db, result, now, transport)
    finally:
        db.close()
    return AutoUpdateRun(result=result, notifications=notifications)


async def run_reminders(
    db: Session,
    now: Optional[int] = None,
    transport: Optional[MailTransport] = None,
) -> ReminderResult:
    return await send_booking_reminders(db, now=now, transport=transport)


async def run_digest(
    db: Session,
    kind: str,
    now: Optional[int] = None,
    transport: Optional[MailTransport] = None,
) -> bool:
    return await send_booking_digest(db, kind, now=now, transport=transport)
