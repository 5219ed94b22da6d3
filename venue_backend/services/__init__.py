# Services package
from .state_machine import (
    ALLOWED_TRANSITIONS, Transition, can_transition, assert_transition,
    evaluate_transition, submit_deposit_evidence
)
from .booking_auto_updater import BookingAutoUpdater, AutoUpdateResult, TransitionRecord
from .email_tracking import has_email_been_sent, log_email_sent, prune_email_log
from .mail_transport import MailTransport
from .notification_dispatcher import NotificationDispatcher
from .booking_reminders import send_booking_reminders, ReminderResult
from .booking_digest import send_daily_booking_digest, send_weekly_booking_digest, send_booking_digest
from .auto_update_notifier import notify_auto_update
from .blob_client import BlobClient, BlobContent
from .booking_lookup import get_booking_by_token, get_booking_by_id, generate_response_token
from .deposit_gateway import (
    resolve_deposit_image, get_deposit_image_by_token, get_deposit_image_for_admin
)

__all__ = [
    "ALLOWED_TRANSITIONS", "Transition", "can_transition", "assert_transition",
    "evaluate_transition", "submit_deposit_evidence",
    "BookingAutoUpdater", "AutoUpdateResult", "TransitionRecord",
    "has_email_been_sent", "log_email_sent", "prune_email_log",
    "MailTransport", "NotificationDispatcher",
    "send_booking_reminders", "ReminderResult",
    "send_daily_booking_digest", "send_weekly_booking_digest", "send_booking_digest",
    "notify_auto_update",
    "BlobClient", "BlobContent",
    "get_booking_by_token", "get_booking_by_id", "generate_response_token",
    "resolve_deposit_image", "get_deposit_image_by_token", "get_deposit_image_for_admin",
]
