"""
HTML email bodies for reminders, status changes, digests and auto-update summaries.
"""

import html
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import settings
from ..models.booking import Booking, BookingStatus
from .state_machine import REASON_DESCRIPTIONS


def format_timestamp(timestamp: Optional[int], tz_name: Optional[str] = None) -> str:
    if timestamp is None:
        return "-"
    tz = ZoneInfo(tz_name or settings.display_timezone)
    return datetime.fromtimestamp(timestamp, tz=tz).strftime("%A, %d %B %Y %H:%M")


def _layout(title: str, content: str, header_color: str = "#3b82f6") -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body style="margin:0;padding:0;font-family:Arial,sans-serif;background-color:#f5f5f5;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding:20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:8px;">
        <tr><td style="background-color:{header_color};padding:30px;text-align:center;">
          <h1 style="margin:0;color:#ffffff;font-size:24px;">{html.escape(title)}</h1>
        </td></tr>
        <tr><td style="padding:30px;color:#1f2937;font-size:14px;">{content}</td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _booking_details(booking: Booking) -> str:
    rows = [
        ("Event", booking.event_type or "-"),
        ("Start", format_timestamp(booking.start_date)),
        ("End", format_timestamp(booking.end_date) if booking.end_date is not None else "-"),
    ]
    cells = "".join(
        f'<tr><td style="border:1px solid #e5e7eb;font-weight:bold;">{label}</td>'
        f'<td style="border:1px solid #e5e7eb;">{html.escape(str(value))}</td></tr>'
        for label, value in rows
    )
    return f'<table width="100%" cellpadding="8" cellspacing="0" style="border-collapse:collapse;">{cells}</table>'


def render_reminder(booking: Booking, days_until_start: int) -> Tuple[str, str]:
    if days_until_start <= 1:
        subject = "Reminder: your booking is tomorrow"
        lead = "Your booking is tomorrow! Please confirm your attendance and prepare for your event."
    else:
        subject = f"Reminder: your booking is in {days_until_start} days"
        lead = f"Your booking is coming up in {days_until_start} days. Please confirm your attendance."
    
    content = (
        f"<p>Hello {html.escape(booking.name)},</p>"
        f"<p>{lead}</p>"
        f"{_booking_details(booking)}"
    )
    return subject, _layout("Booking Reminder", content)


def render_status_change(booking: Booking, new_status: BookingStatus, reason: str) -> Tuple[str, str]:
    description = REASON_DESCRIPTIONS.get(reason, reason)
    label = BookingStatus(new_status).value.replace("_", " ")
    subject = f"Your booking has been {label}"
    content = (
        f"<p>Hello {html.escape(booking.name)},</p>"
        f"<p>Your booking status is now <strong>{html.escape(label)}</strong>.</p>"
        f"<p>{html.escape(description)}</p>"
        f"{_booking_details(booking)}"
    )
    return subject, _layout("Booking Status Update", content, header_color="#6b7280")


def render_auto_update_summary(transitions: List[dict]) -> Tuple[str, str]:
    """``transitions`` are AutoUpdateResult.to_dict()["updated_bookings"] entries"""
    rows = "".join(
        "<tr>"
        f'<td style="border:1px solid #e5e7eb;">{html.escape(t["id"])}</td>'
        f'<td style="border:1px solid #e5e7eb;">{html.escape(t["old_status"])}</td>'
        f'<td style="border:1px solid #e5e7eb;">{html.escape(t["new_status"])}</td>'
        f'<td style="border:1px solid #e5e7eb;">{html.escape(t["reason"])}</td>'
        "</tr>"
        for t in transitions
    )
    subject = f"Auto-update: {len(transitions)} booking(s) changed status"
    content = (
        f"<p>The scheduled auto-update changed {len(transitions)} booking(s).</p>"
        '<table width="100%" cellpadding="8" cellspacing="0" style="border-collapse:collapse;">'
        '<tr style="background-color:#f9fafb;font-weight:bold;">'
        '<td style="border:1px solid #e5e7eb;">Booking</td><td style="border:1px solid #e5e7eb;">From</td>'
        '<td style="border:1px solid #e5e7eb;">To</td><td style="border:1px solid #e5e7eb;">Reason</td></tr>'
        f"{rows}</table>"
    )
    return subject, _layout("Booking Auto-Update", content)


def render_digest(
    title: str,
    period_label: str,
    status_counts: Dict[str, int],
    total: int,
    new_today: int,
    new_week: int,
    recent: List[Booking],
) -> str:
    count_rows = "".join(
        f'<tr><td style="border:1px solid #e5e7eb;">{html.escape(status.value.replace("_", " ").title())}</td>'
        f'<td style="border:1px solid #e5e7eb;text-align:right;">{status_counts.get(status.value, 0)}</td></tr>'
        for status in BookingStatus
    )
    
    recent_html = ""
    if recent:
        recent_rows = "".join(
            "<tr>"
            f'<td style="border:1px solid #e5e7eb;">{html.escape(b.name)}</td>'
            f'<td style="border:1px solid #e5e7eb;">{html.escape(b.event_type or "-")}</td>'
            f'<td style="border:1px solid #e5e7eb;">{html.escape(BookingStatus(b.status).value)}</td>'
            "</tr>"
            for b in recent
        )
        recent_html = (
            "<h3>Recent Bookings</h3>"
            '<table width="100%" cellpadding="8" cellspacing="0" style="border-collapse:collapse;">'
            f"{recent_rows}</table>"
        )
    
    content = (
        f'<p style="color:#6b7280;">{html.escape(period_label)}</p>'
        "<h2>Booking Statistics</h2>"
        '<table width="100%" cellpadding="8" cellspacing="0" style="border-collapse:collapse;">'
        f'<tr style="background-color:#f9fafb;"><td style="border:1px solid #e5e7eb;font-weight:bold;">Total Bookings</td>'
        f'<td style="border:1px solid #e5e7eb;text-align:right;">{total}</td></tr>'
        f"{count_rows}</table>"
        "<h3>New Bookings</h3>"
        f"<p><strong>Last 24 hours:</strong> {new_today}<br><strong>Last 7 days:</strong> {new_week}</p>"
        f"{recent_html}"
    )
    return _layout(title, content)
