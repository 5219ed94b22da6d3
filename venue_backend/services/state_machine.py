"""
Booking State Machine

Exhaustive transition table plus the time-driven rules the auto-updater
applies. Everything here is pure: ``now`` is always passed in.
"""

from dataclasses import dataclass
from typing import Optional, Dict, FrozenSet

from ..models.booking import Booking, BookingStatus
from ..utils.errors import InvalidTransitionError


REASON_START_PASSED_WITHOUT_DECISION = "start_date_passed_without_decision"
REASON_NO_CHECKIN_PAST_GRACE = "no_checkin_past_grace_period"
REASON_END_DATE_PASSED = "end_date_passed"

REASON_DESCRIPTIONS = {
    REASON_START_PASSED_WITHOUT_DECISION: "The reservation start time passed without a decision.",
    REASON_NO_CHECKIN_PAST_GRACE: "The reservation start time passed without check-in (grace period expired).",
    REASON_END_DATE_PASSED: "The reservation end time has passed.",
}


# Forward-only; terminal states have no exits
ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({
        BookingStatus.PENDING_DEPOSIT,
        BookingStatus.ACCEPTED,
        BookingStatus.POSTPONED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.PENDING_DEPOSIT: frozenset({
        BookingStatus.PAID_DEPOSIT,
        BookingStatus.ACCEPTED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.PAID_DEPOSIT: frozenset({
        BookingStatus.ACCEPTED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.FINISHED,
    }),
    BookingStatus.POSTPONED: frozenset({
        BookingStatus.ACCEPTED,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.ACCEPTED: frozenset({
        BookingStatus.CANCELLED,
        BookingStatus.FINISHED,
    }),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.FINISHED: frozenset(),
}

@dataclass(frozen=True)
class Transition:
    new_status: BookingStatus
    reason: str


def can_transition(old_status: BookingStatus, new_status: BookingStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS[BookingStatus(old_status)]


def assert_transition(old_status: BookingStatus, new_status: BookingStatus) -> None:
    if not can_transition(old_status, new_status):
        raise InvalidTransitionError(
            f"Cannot move booking from {BookingStatus(old_status).value} to {BookingStatus(new_status).value}"
        )


def effective_end(booking: Booking) -> int:
    """End timestamp, or the start when a booking has no end date"""
    return booking.end_date if booking.end_date is not None else booking.start_date


def evaluate_transition(booking: Booking, now: int, grace_period_seconds: int) -> Optional[Transition]:
    """
    Decide the time-driven transition for one booking, if any.
    
    Cancellation rules are checked before the finish rule so a booking that
    was never honored cannot end up as finished.
    """
    status = BookingStatus(booking.status)
    
    if status in (BookingStatus.PENDING, BookingStatus.POSTPONED):
        if booking.start_date < now:
            return Transition(BookingStatus.CANCELLED, REASON_START_PASSED_WITHOUT_DECISION)
        return None
    
    if status == BookingStatus.ACCEPTED and booking.checked_in_at is None:
        if booking.start_date + grace_period_seconds < now:
            return Transition(BookingStatus.CANCELLED, REASON_NO_CHECKIN_PAST_GRACE)
    
    if status in (BookingStatus.ACCEPTED, BookingStatus.PAID_DEPOSIT):
        if effective_end(booking) < now:
            return Transition(BookingStatus.FINISHED, REASON_END_DATE_PASSED)
    
    return None


def submit_deposit_evidence(booking: Booking, evidence_url: str, now: int) -> None:
    """Attach deposit evidence; only a booking awaiting its deposit accepts one"""
    if BookingStatus(booking.status) != BookingStatus.PENDING_DEPOSIT:
        raise InvalidTransitionError("Deposit evidence can only be submitted while a deposit is pending")
    if not evidence_url:
        raise InvalidTransitionError("Deposit evidence URL is required")
    assert_transition(booking.status, BookingStatus.PAID_DEPOSIT)
    booking.deposit_evidence_url = evidence_url
    booking.status = BookingStatus.PAID_DEPOSIT
    booking.updated_at = now
