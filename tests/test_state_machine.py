"""
Tests for the booking state machine

Tests cover:
- Transition table (forward-only, terminal states have no exits)
- Time-driven rules and their precedence
- Deposit evidence submission
"""

import pytest

from venue_backend.models.booking import Booking, BookingStatus, TERMINAL_STATUSES
from venue_backend.services.state_machine import (
    ALLOWED_TRANSITIONS,
    REASON_END_DATE_PASSED,
    REASON_NO_CHECKIN_PAST_GRACE,
    REASON_START_PASSED_WITHOUT_DECISION,
    assert_transition,
    can_transition,
    effective_end,
    evaluate_transition,
    submit_deposit_evidence,
)
from venue_backend.utils.errors import InvalidTransitionError

from conftest import NOW, HOUR, DAY

GRACE = HOUR


def booking(status, start_date, end_date=None, checked_in_at=None):
    return Booking(
        id="b-1",
        name="Guest",
        email="guest@example.com",
        status=status,
        start_date=start_date,
        end_date=end_date,
        checked_in_at=checked_in_at,
        response_token="t",
        created_at=NOW,
        updated_at=NOW,
    )


class TestTransitionTable:

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(BookingStatus)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, terminal):
        for target in BookingStatus:
            assert can_transition(terminal, target) is False

    def test_no_transition_back_to_pending(self):
        for source in BookingStatus:
            assert can_transition(source, BookingStatus.PENDING) is False

    def test_assert_transition_raises_for_disallowed_move(self):
        with pytest.raises(InvalidTransitionError):
            assert_transition(BookingStatus.FINISHED, BookingStatus.ACCEPTED)

    def test_auto_rule_targets_are_allowed(self):
        assert can_transition(BookingStatus.PENDING, BookingStatus.CANCELLED)
        assert can_transition(BookingStatus.POSTPONED, BookingStatus.CANCELLED)
        assert can_transition(BookingStatus.ACCEPTED, BookingStatus.CANCELLED)
        assert can_transition(BookingStatus.ACCEPTED, BookingStatus.FINISHED)
        assert can_transition(BookingStatus.PAID_DEPOSIT, BookingStatus.FINISHED)


class TestEvaluateTransition:

    def test_pending_past_start_is_cancelled(self):
        transition = evaluate_transition(booking(BookingStatus.PENDING, NOW - 1), NOW, GRACE)
        assert transition.new_status == BookingStatus.CANCELLED
        assert transition.reason == REASON_START_PASSED_WITHOUT_DECISION

    def test_postponed_past_start_is_cancelled(self):
        transition = evaluate_transition(booking(BookingStatus.POSTPONED, NOW - DAY), NOW, GRACE)
        assert transition.new_status == BookingStatus.CANCELLED

    def test_pending_in_future_is_untouched(self):
        assert evaluate_transition(booking(BookingStatus.PENDING, NOW + DAY), NOW, GRACE) is None

    def test_pending_start_equal_to_now_is_untouched(self):
        assert evaluate_transition(booking(BookingStatus.PENDING, NOW), NOW, GRACE) is None

    def test_accepted_inside_grace_period_is_untouched(self):
        b = booking(BookingStatus.ACCEPTED, NOW - GRACE + 60, NOW + DAY)
        assert evaluate_transition(b, NOW, GRACE) is None

    def test_accepted_without_checkin_past_grace_is_cancelled(self):
        b = booking(BookingStatus.ACCEPTED, NOW - GRACE - 1, NOW + DAY)
        transition = evaluate_transition(b, NOW, GRACE)
        assert transition.new_status == BookingStatus.CANCELLED
        assert transition.reason == REASON_NO_CHECKIN_PAST_GRACE

    def test_cancellation_wins_over_finish(self):
        """Never checked in and already over: cancelled, not finished"""
        b = booking(BookingStatus.ACCEPTED, NOW - 2 * DAY, NOW - DAY)
        transition = evaluate_transition(b, NOW, GRACE)
        assert transition.new_status == BookingStatus.CANCELLED
        assert transition.reason == REASON_NO_CHECKIN_PAST_GRACE

    def test_checked_in_booking_finishes_after_end(self):
        b = booking(BookingStatus.ACCEPTED, NOW - 2 * DAY, NOW - DAY, checked_in_at=NOW - 2 * DAY)
        transition = evaluate_transition(b, NOW, GRACE)
        assert transition.new_status == BookingStatus.FINISHED
        assert transition.reason == REASON_END_DATE_PASSED

    def test_checked_in_booking_in_progress_is_untouched(self):
        b = booking(BookingStatus.ACCEPTED, NOW - 2 * HOUR, NOW + HOUR, checked_in_at=NOW - 2 * HOUR)
        assert evaluate_transition(b, NOW, GRACE) is None

    def test_paid_deposit_finishes_after_end(self):
        b = booking(BookingStatus.PAID_DEPOSIT, NOW - 2 * DAY, NOW - DAY)
        assert evaluate_transition(b, NOW, GRACE).new_status == BookingStatus.FINISHED

    def test_paid_deposit_in_progress_is_untouched(self):
        b = booking(BookingStatus.PAID_DEPOSIT, NOW - DAY, NOW + DAY)
        assert evaluate_transition(b, NOW, GRACE) is None

    def test_missing_end_date_falls_back_to_start(self):
        b = booking(BookingStatus.PAID_DEPOSIT, NOW - DAY)
        assert effective_end(b) == NOW - DAY
        assert evaluate_transition(b, NOW, GRACE).new_status == BookingStatus.FINISHED

    @pytest.mark.parametrize("status", [
        BookingStatus.PENDING_DEPOSIT,
        BookingStatus.REJECTED,
        BookingStatus.CANCELLED,
        BookingStatus.FINISHED,
    ])
    def test_other_statuses_never_move(self, status):
        b = booking(status, NOW - 10 * DAY, NOW - 9 * DAY)
        assert evaluate_transition(b, NOW, GRACE) is None


class TestSubmitDepositEvidence:

    def test_pending_deposit_becomes_paid(self):
        b = booking(BookingStatus.PENDING_DEPOSIT, NOW + DAY)
        submit_deposit_evidence(b, "https://blob.example/evidence.png", NOW)
        assert b.status == BookingStatus.PAID_DEPOSIT
        assert b.deposit_evidence_url == "https://blob.example/evidence.png"
        assert b.updated_at == NOW

    def test_rejected_outside_pending_deposit(self):
        b = booking(BookingStatus.ACCEPTED, NOW + DAY)
        with pytest.raises(InvalidTransitionError):
            submit_deposit_evidence(b, "https://blob.example/evidence.png", NOW)
        assert b.deposit_evidence_url is None

    def test_requires_url(self):
        b = booking(BookingStatus.PENDING_DEPOSIT, NOW + DAY)
        with pytest.raises(InvalidTransitionError):
            submit_deposit_evidence(b, "", NOW)
