"""Read-only attendance overview for an event."""
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from rsvp.attendance.confirmation import get_confirmation_stats
from rsvp.attendance.errors import NotFoundError
from rsvp.attendance.store import waitlisted_records
from rsvp.models import AttendanceRecord, Event, RsvpStatus


def get_attendance_summary(session: Session, event_id: UUID) -> dict:
    """Counts per status, remaining capacity, the waitlist and confirmation stats."""
    event = session.get(Event, event_id)
    if not event:
        raise NotFoundError(f"Event {event_id} not found")

    rows = session.exec(
        select(AttendanceRecord.status, func.count())
        .where(AttendanceRecord.event_id == event_id)
        .group_by(AttendanceRecord.status)
    ).all()
    counts = {status.value: 0 for status in RsvpStatus}
    for status, count in rows:
        counts[RsvpStatus(status).value] = count

    spots_left = None
    if event.capacity is not None:
        spots_left = max(event.capacity - counts[RsvpStatus.going.value], 0)

    return {
        "event_id": str(event.id),
        "capacity": event.capacity,
        "spots_left": spots_left,
        "counts": counts,
        "waitlist": [
            {"user_id": record.user_id, "position": record.waitlist_position}
            for record in waitlisted_records(session, event_id)
        ],
        "confirmations": get_confirmation_stats(session, event_id),
    }
