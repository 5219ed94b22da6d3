"""
Booking Status Auto-Update Service

Reconciles booking statuses against the wall clock:
- pending/postponed bookings whose start passed without a decision -> cancelled
- accepted bookings with no check-in after the grace period -> cancelled
- accepted/paid_deposit bookings whose end passed -> finished

Each transition is a single conditional UPDATE keyed by booking id and the
status we read, so a concurrent pass or admin action that got there first
turns our write into a no-op instead of an overwrite.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking, BookingStatus, BookingStatusHistory
from ..utils.errors import InternalError
from ..utils.logging_config import get_logger
from .state_machine import (
    Transition,
    assert_transition,
    evaluate_transition,
)

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


@dataclass
class TransitionRecord:
    """Plain values only, so a record outlives the session that produced it"""
    booking_id: str
    old_status: BookingStatus
    new_status: BookingStatus
    reason: str

    def to_dict(self) -> dict:
        return {
            "id": self.booking_id,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
            "reason": self.reason,
        }


@dataclass
class AutoUpdateResult:
    """Summary of one reconciliation pass. Never persisted."""
    cancelled: int = 0
    finished: int = 0
    transitions: List[TransitionRecord] = field(default_factory=list)
    scanned: int = 0
    remaining: int = 0

    def record(self, record: TransitionRecord) -> None:
        self.transitions.append(record)
        if record.new_status == BookingStatus.CANCELLED:
            self.cancelled += 1
        elif record.new_status == BookingStatus.FINISHED:
            self.finished += 1

    def to_dict(self) -> dict:
        return {
            "cancelled": self.cancelled,
            "finished": self.finished,
            "scanned": self.scanned,
            "remaining": self.remaining,
            "updated_bookings": [t.to_dict() for t in self.transitions],
        }


class BookingAutoUpdater:
    """
    Reconciliation engine, invoked periodically by an external scheduler.

    Safe to run repeatedly and concurrently: a second pass with the same
    ``now`` finds nothing left to change.
    """

    def __init__(
        self,
        db: Session,
        grace_period_seconds: Optional[int] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.grace_period_seconds = (
            settings.check_in_grace_period_seconds if grace_period_seconds is None else grace_period_seconds
        )
        self.batch_size = settings.auto_update_batch_size if batch_size is None else batch_size

    def _candidate_filter(self, now: int):
        # Only bookings some rule would move right now, so rows that are
        # still in progress never take batch slots from overdue ones
        return or_(
            and_(
                Booking.status.in_([BookingStatus.PENDING.value, BookingStatus.POSTPONED.value]),
                Booking.start_date < now,
            ),
            and_(
                Booking.status == BookingStatus.ACCEPTED.value,
                Booking.checked_in_at.is_(None),
                Booking.start_date + self.grace_period_seconds < now,
            ),
            and_(
                Booking.status.in_([BookingStatus.ACCEPTED.value, BookingStatus.PAID_DEPOSIT.value]),
                func.coalesce(Booking.end_date, Booking.start_date) < now,
            ),
        )

    def fetch_candidates(self, now: int) -> List[Booking]:
        return (
            self.db.query(Booking)
            .filter(self._candidate_filter(now))
            .order_by(Booking.start_date.asc(), Booking.id.asc())
            .limit(self.batch_size)
            .all()
        )

    def count_candidates(self, now: int) -> int:
        return self.db.query(Booking).filter(self._candidate_filter(now)).count()

    def apply_transition(self, booking: Booking, transition: Transition, now: int) -> bool:
        """
        Persist one transition atomically.

        Returns False when the booking is no longer in the status we read.
        """
        old_status = BookingStatus(booking.status)
        assert_transition(old_status, transition.new_status)

        updated = (
            self.db.query(Booking)
            .filter(Booking.id == booking.id, Booking.status == old_status.value)
            .update(
                {Booking.status: transition.new_status.value, Booking.updated_at: now},
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            logger.info(f"Booking {booking.id} changed concurrently, skipping {old_status.value} -> {transition.new_status.value}")
            return False

        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            old_status=old_status.value,
            new_status=transition.new_status.value,
            changed_by=SYSTEM_ACTOR,
            change_reason=transition.reason,
            created_at=now,
        ))
        self.db.commit()
        return True

    def reconcile(self, now: int) -> AutoUpdateResult:
        """
        Run one reconciliation pass at time ``now``.

        Raises:
            InternalError: the candidate set could not be loaded
        """
        result = AutoUpdateResult()

        try:
            total = self.count_candidates(now)
            candidates = self.fetch_candidates(now)
            # Read ids while rows are fresh; each commit below expires them
            candidate_ids = [booking.id for booking in candidates]
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to load reconciliation candidates: {e}")
            raise InternalError("Failed to load bookings for auto-update") from e

        result.scanned = len(candidates)
        result.remaining = max(total - len(candidates), 0)

        for booking, booking_id in zip(candidates, candidate_ids):
            try:
                transition = evaluate_transition(booking, now, self.grace_period_seconds)
                if transition is None:
                    continue

                old_status = BookingStatus(booking.status)
                if not self.apply_transition(booking, transition, now):
                    continue

                result.record(TransitionRecord(
                    booking_id=booking_id,
                    old_status=old_status,
                    new_status=transition.new_status,
                    reason=transition.reason,
                ))
                logger.booking_status_changed(
                    booking_id, old_status.value, transition.new_status.value, transition.reason
                )
            except Exception as e:
                self.db.rollback()
                logger.log_with_context(
                    logging.ERROR,
                    f"Error auto-updating booking {booking_id}: {e}",
                    entity_type="booking",
                    entity_id=booking_id,
                )

        if result.transitions:
            logger.info(
                f"Auto-update: {result.cancelled} cancelled, {result.finished} finished "
                f"({result.scanned} scanned, {result.remaining} remaining)"
            )

        return result


def reconcile_in_own_session(session_factory: Callable[[], Session], now: int, **kwargs) -> AutoUpdateResult:
    """
    Run a pass on a session opened and closed by the calling thread.

    Used from worker threads: a Session must never be shared across threads.
    """
    db = session_factory()
    try:
        return BookingAutoUpdater(db, **kwargs).reconcile(now)
    finally:
        db.close()
