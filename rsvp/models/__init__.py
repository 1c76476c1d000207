from rsvp.models.attendance import (
    AttendanceMode,
    AttendanceRecord,
    ConfirmationStatus,
    RsvpStatus,
)
from rsvp.models.event import Event, EventType
from rsvp.models.user import User

__all__ = [
    "AttendanceMode",
    "AttendanceRecord",
    "ConfirmationStatus",
    "Event",
    "EventType",
    "RsvpStatus",
    "User",
]
