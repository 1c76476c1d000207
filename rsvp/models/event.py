"""Event model for capacity-limited events people can RSVP to.

Events are owned by the event management side of the product; this service
keeps the subset of event metadata the attendance engine needs (capacity,
attendance format and start time) in the same database as the attendance
records, so capacity checks and record writes can share one transaction.
"""

import enum
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from rsvp.models.attendance import AttendanceRecord


class EventType(str, enum.Enum):
    in_person = "in_person"
    online = "online"
    hybrid = "hybrid"


class Event(SQLModel, table=True):
    """An event with optional limited capacity.

    Attributes:
        id: Unique identifier (UUID).
        title: Event title, used in confirmation prompts.
        start_time: When the event starts. Drives the day-of confirmation
            sweep.
        end_time: When the event ends.
        capacity: Maximum number of ``going`` attendees. ``None`` means
            unlimited, in which case nobody is ever waitlisted.
        event_type: Attendance format. Hybrid events accept both in-person
            and online attendees and require going attendees to pick one.
        records: Attendance records for this event.
    """
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    start_time: datetime = Field(index=True)
    end_time: datetime
    capacity: int | None = Field(default=None, gt=0)
    event_type: EventType = Field(default=EventType.in_person)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    records: list["AttendanceRecord"] = Relationship(back_populates="event")

    @property
    def is_dual_mode(self) -> bool:
        return self.event_type == EventType.hybrid
