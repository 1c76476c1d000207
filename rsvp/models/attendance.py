"""Attendance record model: one row per (event, user) pair.

This module defines the AttendanceRecord model, the source of truth for a
user's RSVP status, waitlist position, attendance mode and day-of
confirmation state for a single event.

Table constraints:
    - ``(event_id, user_id)`` is unique, so RSVP writes are upserts.
    - ``(event_id, waitlist_position)`` is unique among waitlisted rows, so
      two transactions can never commit the same position.
    - ``(event_id, status)`` is indexed for capacity counting.
"""

import enum
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from rsvp.models.event import Event


class RsvpStatus(str, enum.Enum):
    going = "going"
    interested = "interested"
    not_going = "not_going"
    waitlisted = "waitlisted"


class AttendanceMode(str, enum.Enum):
    in_person = "in_person"
    online = "online"


class ConfirmationStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    bailed_out = "bailed_out"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AttendanceRecord(SQLModel, table=True):
    """A user's attendance intent for one event.

    Records are created on the first RSVP, updated by every later status
    change (RSVP update, promotion, confirmation, bail-out) and deleted only
    when the user cancels.

    Attributes:
        id: Unique identifier (UUID), used to address the record from
            confirmation prompts.
        event_id: Foreign key to the Event.
        user_id: Foreign key to the User.
        status: One of "going", "interested", "not_going" or "waitlisted".
        waitlist_position: 1-based FIFO position. Set if and only if the
            status is "waitlisted"; dense per event.
        attendance_mode: "in_person" or "online" for hybrid events when the
            status is "going" or "interested", otherwise None.
        confirmation_status: Day-of confirmation state. "pending" or
            "confirmed" while going, otherwise None. The one exception is
            "bailed_out", kept on the "not_going" record a bail-out leaves
            behind until the user's next RSVP clears it.
        confirmation_sent_at: When the day-of prompt was dispatched. A
            record is prompted at most once.
        confirmation_response_at: When the user confirmed or bailed out.
        bail_out_reason: Optional free text supplied when bailing out.
        event: Reference to the parent Event.
    """
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_attendance_event_user"),
        Index("ix_attendance_event_status", "event_id", "status"),
        Index(
            "ux_attendance_waitlist_position",
            "event_id",
            "waitlist_position",
            unique=True,
            sqlite_where=text("status = 'waitlisted'"),
            postgresql_where=text("status = 'waitlisted'"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_id: UUID = Field(foreign_key="event.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    status: RsvpStatus
    waitlist_position: int | None = Field(default=None, gt=0)
    attendance_mode: AttendanceMode | None = None
    confirmation_status: ConfirmationStatus | None = None
    confirmation_sent_at: datetime | None = None
    confirmation_response_at: datetime | None = None
    bail_out_reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column_kwargs={"onupdate": _utcnow}
    )

    # Relationship
    event: Optional["Event"] = Relationship(back_populates="records")
