"""
Tests for Booking Auto-Update (reconciliation)

Tests cover:
- Cancel/finish rules applied against a real database
- Idempotency (second pass with the same clock changes nothing)
- Conditional update: a concurrent change turns our write into a no-op
- Per-booking failure isolation
- Batch limits and the remaining count
"""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from venue_backend.models.booking import Booking, BookingStatus, BookingStatusHistory
from venue_backend.services import booking_auto_updater
from venue_backend.services.booking_auto_updater import BookingAutoUpdater
from venue_backend.services.state_machine import (
    Transition,
    REASON_NO_CHECKIN_PAST_GRACE,
    REASON_START_PASSED_WITHOUT_DECISION,
)
from venue_backend.utils.errors import InternalError

from conftest import NOW, HOUR, DAY


def status_of(db, booking_id):
    db.expire_all()
    return db.query(Booking).filter(Booking.id == booking_id).one().status


class TestReconcile:

    def test_pending_past_start_is_cancelled(self, db, make_booking):
        b = make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)

        result = BookingAutoUpdater(db, grace_period_seconds=HOUR).reconcile(NOW)

        assert result.cancelled == 1
        assert result.finished == 0
        assert status_of(db, b.id) == BookingStatus.CANCELLED
        assert result.to_dict()["updated_bookings"] == [{
            "id": b.id,
            "old_status": "pending",
            "new_status": "cancelled",
            "reason": REASON_START_PASSED_WITHOUT_DECISION,
        }]

    def test_accepted_without_checkin_cancelled_not_finished(self, db, make_booking):
        b = make_booking(
            status=BookingStatus.ACCEPTED,
            start_date=NOW - 2 * DAY,
            end_date=NOW - DAY,
        )

        result = BookingAutoUpdater(db, grace_period_seconds=HOUR).reconcile(NOW)

        assert result.cancelled == 1
        assert result.finished == 0
        assert result.transitions[0].reason == REASON_NO_CHECKIN_PAST_GRACE
        assert status_of(db, b.id) == BookingStatus.CANCELLED

    def test_checked_in_and_paid_deposit_bookings_finish(self, db, make_booking):
        checked_in = make_booking(
            status=BookingStatus.ACCEPTED,
            start_date=NOW - 2 * DAY,
            end_date=NOW - DAY,
            checked_in_at=NOW - 2 * DAY,
        )
        paid = make_booking(status=BookingStatus.PAID_DEPOSIT, start_date=NOW - 3 * DAY, end_date=NOW - 2 * DAY)

        result = BookingAutoUpdater(db, grace_period_seconds=HOUR).reconcile(NOW)

        assert result.finished == 2
        assert status_of(db, checked_in.id) == BookingStatus.FINISHED
        assert status_of(db, paid.id) == BookingStatus.FINISHED

    def test_future_and_terminal_bookings_untouched(self, db, make_booking):
        future = make_booking(status=BookingStatus.PENDING, start_date=NOW + DAY)
        rejected = make_booking(status=BookingStatus.REJECTED, start_date=NOW - DAY)
        deposit = make_booking(status=BookingStatus.PENDING_DEPOSIT, start_date=NOW - DAY)

        result = BookingAutoUpdater(db, grace_period_seconds=HOUR).reconcile(NOW)

        assert result.transitions == []
        assert status_of(db, future.id) == BookingStatus.PENDING
        assert status_of(db, rejected.id) == BookingStatus.REJECTED
        assert status_of(db, deposit.id) == BookingStatus.PENDING_DEPOSIT

    def test_second_pass_is_a_no_op(self, db, make_booking):
        make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)
        make_booking(status=BookingStatus.PAID_DEPOSIT, start_date=NOW - 2 * DAY, end_date=NOW - DAY)
        updater = BookingAutoUpdater(db, grace_period_seconds=HOUR)

        first = updater.reconcile(NOW)
        second = updater.reconcile(NOW)

        assert len(first.transitions) == 2
        assert second.transitions == []
        assert second.cancelled == 0
        assert second.finished == 0

    def test_history_row_written_per_transition(self, db, make_booking):
        b = make_booking(status=BookingStatus.POSTPONED, start_date=NOW - HOUR)

        BookingAutoUpdater(db, grace_period_seconds=HOUR).reconcile(NOW)

        history = db.query(BookingStatusHistory).filter(BookingStatusHistory.booking_id == b.id).all()
        assert len(history) == 1
        assert history[0].old_status == "postponed"
        assert history[0].new_status == "cancelled"
        assert history[0].changed_by == "system"
        assert history[0].created_at == NOW

    def test_batch_limit_reports_remaining(self, db, make_booking):
        for i in range(5):
            make_booking(status=BookingStatus.PENDING, start_date=NOW - (i + 1) * HOUR)

        updater = BookingAutoUpdater(db, grace_period_seconds=HOUR, batch_size=2)
        first = updater.reconcile(NOW)

        assert first.scanned == 2
        assert first.cancelled == 2
        assert first.remaining == 3

        second = updater.reconcile(NOW)
        third = updater.reconcile(NOW)
        assert second.cancelled == 2
        assert third.cancelled == 1
        assert third.remaining == 0

    def test_oldest_bookings_processed_first(self, db, make_booking):
        newer = make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)
        older = make_booking(status=BookingStatus.PENDING, start_date=NOW - 5 * HOUR)

        result = BookingAutoUpdater(db, grace_period_seconds=HOUR, batch_size=1).reconcile(NOW)

        assert [t.booking_id for t in result.transitions] == [older.id]
        assert status_of(db, newer.id) == BookingStatus.PENDING

    def test_bookings_still_in_progress_do_not_fill_the_batch(self, db, make_booking):
        """Checked-in, in-grace and unfinished bookings start earlier but cannot move yet"""
        make_booking(
            status=BookingStatus.ACCEPTED,
            start_date=NOW - 3 * DAY,
            end_date=NOW + 3 * DAY,
            checked_in_at=NOW - 3 * DAY,
        )
        make_booking(status=BookingStatus.ACCEPTED, start_date=NOW - 2 * DAY - 60, end_date=NOW + DAY, checked_in_at=NOW - 2 * DAY)
        make_booking(status=BookingStatus.PAID_DEPOSIT, start_date=NOW - 2 * DAY, end_date=NOW + DAY)
        make_booking(status=BookingStatus.ACCEPTED, start_date=NOW - HOUR + 60, end_date=NOW + DAY)
        overdue = make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)

        result = BookingAutoUpdater(db, grace_period_seconds=HOUR, batch_size=1).reconcile(NOW)

        assert result.cancelled == 1
        assert result.remaining == 0
        assert [t.booking_id for t in result.transitions] == [overdue.id]
        assert status_of(db, overdue.id) == BookingStatus.CANCELLED


class TestConcurrency:

    def test_concurrent_change_makes_update_a_no_op(self, db, make_booking):
        """Admin accepted the booking after we read it as pending"""
        b = make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)
        updater = BookingAutoUpdater(db, grace_period_seconds=HOUR)
        stale = updater.fetch_candidates(NOW)[0]

        db.query(Booking).filter(Booking.id == b.id).update(
            {Booking.status: BookingStatus.ACCEPTED.value}, synchronize_session=False
        )
        assert stale.status == BookingStatus.PENDING

        applied = updater.apply_transition(
            stale, Transition(BookingStatus.CANCELLED, REASON_START_PASSED_WITHOUT_DECISION), NOW
        )

        assert applied is False
        assert db.query(BookingStatusHistory).count() == 0

    def test_concurrent_change_is_not_counted(self, db, make_booking):
        make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)
        updater = BookingAutoUpdater(db, grace_period_seconds=HOUR)

        with patch.object(updater, "apply_transition", return_value=False):
            result = updater.reconcile(NOW)

        assert result.transitions == []
        assert result.cancelled == 0


class TestFailureIsolation:

    def test_one_failing_booking_does_not_stop_the_pass(self, db, make_booking):
        bad = make_booking(status=BookingStatus.PENDING, start_date=NOW - 2 * HOUR)
        good = make_booking(status=BookingStatus.PENDING, start_date=NOW - HOUR)
        real_evaluate = booking_auto_updater.evaluate_transition

        def flaky_evaluate(booking, now, grace):
            if booking.id == bad.id:
                raise RuntimeError("corrupt row")
            return real_evaluate(booking, now, grace)

        with patch.object(booking_auto_updater, "evaluate_transition", side_effect=flaky_evaluate):
            result = BookingAutoUpdater(db, grace_period_seconds=HOUR).reconcile(NOW)

        assert [t.booking_id for t in result.transitions] == [good.id]
        assert status_of(db, bad.id) == BookingStatus.PENDING
        assert status_of(db, good.id) == BookingStatus.CANCELLED

    def test_candidate_query_failure_raises_internal_error(self):
        db = MagicMock()
        db.query.side_effect = SQLAlchemyError("connection lost")

        with pytest.raises(InternalError):
            BookingAutoUpdater(db, grace_period_seconds=HOUR, batch_size=10).reconcile(NOW)

        db.rollback.assert_called_once()

    def test_row_that_cannot_be_reloaded_does_not_abort_the_pass(self):
        """After a rollback every loaded row is expired; re-reading one can fail"""
        db = MagicMock()
        state = {"rolled_back": False}
        db.rollback.side_effect = lambda: state.update(rolled_back=True)

        class ExpiringRow:
            def __init__(self, booking_id):
                self._id = booking_id

            @property
            def id(self):
                if state["rolled_back"]:
                    raise OperationalError("SELECT bookings", {}, Exception("connection reset"))
                return self._id

        updater = BookingAutoUpdater(db, grace_period_seconds=HOUR, batch_size=10)
        with patch.object(updater, "count_candidates", return_value=2), \
                patch.object(updater, "fetch_candidates", return_value=[ExpiringRow("first"), ExpiringRow("second")]), \
                patch.object(booking_auto_updater, "evaluate_transition", side_effect=[RuntimeError("bad row"), None]):
            result = updater.reconcile(NOW)

        assert result.scanned == 2
        assert result.transitions == []
        db.rollback.assert_called_once()
