from pydantic import BaseModel
from typing import List, Optional

from ..models.booking import BookingStatus


class TransitionResponse(BaseModel):
    id: str
    old_status: BookingStatus
    new_status: BookingStatus
    reason: str


class AutoUpdateResponse(BaseModel):
    success: bool = True
    message: str = "Bookings auto-updated successfully"
    cancelled: int
    finished: int
    scanned: int
    remaining: int
    updated_bookings: List[TransitionResponse]
    notifications_sent: int = 0


class ReminderError(BaseModel):
    booking_id: str
    error: str


class ReminderResponse(BaseModel):
    success: bool = True
    sent_7day: int
    sent_24hour: int
    errors: List[ReminderError]


class DigestResponse(BaseModel):
    success: bool = True
    type: str
    sent: bool
    message: Optional[str] = None
