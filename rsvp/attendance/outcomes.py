"""Result types returned by attendance operations.

Each result is tagged with ``kind`` so the request layer can serialize it
as-is and clients can switch on it. Being waitlisted is a successful
outcome, not an error.
"""

from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field

from rsvp.models import RsvpStatus


class Confirmed(BaseModel):
    """The requested status was written."""
    kind: Literal["confirmed"] = "confirmed"
    record_id: UUID
    status: RsvpStatus


class Waitlisted(BaseModel):
    """The event is full; the user holds ``position`` on its waitlist."""
    kind: Literal["waitlisted"] = "waitlisted"
    record_id: UUID
    position: int


RsvpOutcome = Annotated[Union[Confirmed, Waitlisted], Field(discriminator="kind")]


class Cancelled(BaseModel):
    kind: Literal["cancelled"] = "cancelled"
    removed: bool = True
    promoted_user_id: int | None = None


class AttendanceConfirmed(BaseModel):
    kind: Literal["attendance_confirmed"] = "attendance_confirmed"
    record_id: UUID
    event_id: UUID


class BailedOut(BaseModel):
    kind: Literal["bailed_out"] = "bailed_out"
    record_id: UUID
    event_id: UUID
    promoted_user_id: int | None = None


class SweepResult(BaseModel):
    """Totals from one confirmation sweep."""
    processed: int = 0
    sent: int = 0
    failed: int = 0


class ReconcileResult(BaseModel):
    """Totals from one waitlist reconciliation pass."""
    events: int = 0
    renumbered: int = 0
    promoted: int = 0
