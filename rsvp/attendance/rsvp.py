"""RSVP state machine.

Applies a user's requested attendance status for one event and decides
between direct admission and the waitlist. Callers can only request
"going", "interested" or "not_going"; "waitlisted" is an outcome.

Each operation is one transaction that starts by locking the event, so the
capacity check, the record write and any promotion it triggers commit
together or not at all.
"""
import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlmodel import Session

from rsvp.attendance.collaborators import DatabaseEventMetadata, EventMetadataProvider
from rsvp.attendance.errors import NotFoundError, ValidationError
from rsvp.attendance.outcomes import Cancelled, Confirmed, Waitlisted
from rsvp.attendance.store import (
    count_going,
    get_record,
    lock_event,
    transaction,
    user_exists,
)
from rsvp.attendance.waitlist import assign_next_position, on_slot_vacated, resequence
from rsvp.models import AttendanceMode, AttendanceRecord, ConfirmationStatus, RsvpStatus

logger = logging.getLogger(__name__)

REQUESTABLE_STATUSES = (RsvpStatus.going, RsvpStatus.interested, RsvpStatus.not_going)


def parse_status(value: str | RsvpStatus) -> RsvpStatus:
    """Validate a requested RSVP status."""
    try:
        status = RsvpStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid RSVP status: {value}") from None
    if status not in REQUESTABLE_STATUSES:
        raise ValidationError(f"RSVP status '{status.value}' cannot be requested")
    return status


def parse_mode(value: str | AttendanceMode | None) -> AttendanceMode | None:
    """Validate an optional attendance mode."""
    if value is None:
        return None
    try:
        return AttendanceMode(value)
    except ValueError:
        raise ValidationError(f"Invalid attendance mode: {value}") from None


def _write_record(
    session: Session,
    record: AttendanceRecord | None,
    event_id: UUID,
    user_id: int,
    status: RsvpStatus,
    mode: AttendanceMode | None,
    position: int | None = None,
) -> AttendanceRecord:
    """Insert or update the (event, user) record with a new status."""
    was_going = record is not None and record.status == RsvpStatus.going
    if record is None:
        record = AttendanceRecord(event_id=event_id, user_id=user_id, status=status)

    record.status = status
    record.waitlist_position = position if status == RsvpStatus.waitlisted else None
    record.attendance_mode = mode
    if status != RsvpStatus.going:
        record.confirmation_status = None
    elif not was_going:
        record.confirmation_status = ConfirmationStatus.pending
    record.updated_at = datetime.now(UTC)
    session.add(record)
    session.flush()
    return record


def apply_rsvp(
    session: Session,
    event_id: UUID,
    user_id: int,
    desired_status: str | RsvpStatus,
    attendance_mode: str | AttendanceMode | None = None,
    events: EventMetadataProvider | None = None,
) -> Confirmed | Waitlisted:
    """Record a user's RSVP for an event.

    Requests other than "going", requests for unlimited events, and requests
    from users who already hold a going slot are written as-is. A new
    "going" request is admitted while the event is under capacity and
    waitlisted at the next position otherwise. Repeating "going" while
    waitlisted keeps the existing position even if a seat is free; free
    capacity is only handed to the waitlist by ``on_slot_vacated`` and
    ``reconcile_waitlist``, in FIFO order.

    Leaving "going" frees a slot, which is offered to the head of the
    waitlist in the same transaction; leaving the waitlist closes the gap.

    Raises:
        ValidationError: Bad status or mode, or missing mode for going to a
            hybrid event.
        NotFoundError: Unknown event or user.
        StoreError: The transaction failed.
    """
    status = parse_status(desired_status)
    mode = parse_mode(attendance_mode)
    events = events or DatabaseEventMetadata(session)

    with transaction(session):
        if not events.event_exists(event_id):
            raise NotFoundError(f"Event {event_id} not found")
        if not user_exists(session, user_id):
            raise NotFoundError(f"User {user_id} not found")
        lock_event(session, event_id)

        dual_mode = events.supports_dual_mode(event_id)
        if dual_mode and status == RsvpStatus.going and mode is None:
            raise ValidationError("Attendance mode is required to attend a hybrid event")
        if not dual_mode or status == RsvpStatus.not_going:
            mode = None

        record = get_record(session, event_id, user_id)
        previous = record.status if record else None
        capacity = events.get_capacity(event_id)

        if status == RsvpStatus.going and previous == RsvpStatus.waitlisted:
            record.attendance_mode = mode
            session.add(record)
            outcome = Waitlisted(record_id=record.id, position=record.waitlist_position)
        elif (
            status != RsvpStatus.going
            or capacity is None
            or previous == RsvpStatus.going
            or count_going(session, event_id) < capacity
        ):
            record = _write_record(session, record, event_id, user_id, status, mode)
            outcome = Confirmed(record_id=record.id, status=status)
        else:
            position = assign_next_position(session, event_id)
            record = _write_record(
                session, record, event_id, user_id, RsvpStatus.waitlisted, mode, position
            )
            outcome = Waitlisted(record_id=record.id, position=position)

        if previous == RsvpStatus.going and status != RsvpStatus.going:
            on_slot_vacated(session, event_id, events)
        elif previous == RsvpStatus.waitlisted and record.status != RsvpStatus.waitlisted:
            resequence(session, event_id)

    if isinstance(outcome, Waitlisted):
        logger.info(
            f"User {user_id} waitlisted for event {event_id} at position {outcome.position}"
        )
    else:
        logger.info(f"User {user_id} RSVP'd '{status.value}' to event {event_id}")
    return outcome


def cancel_rsvp(
    session: Session,
    event_id: UUID,
    user_id: int,
    events: EventMetadataProvider | None = None,
) -> Cancelled:
    """Remove a user's attendance record for an event.

    Cancelling a going record promotes the head of the waitlist; cancelling
    a waitlisted record renumbers the entries behind it. Cancelling when no
    record exists succeeds with ``removed=False`` so retries are harmless.

    Raises:
        NotFoundError: Unknown event.
        StoreError: The transaction failed.
    """
    events = events or DatabaseEventMetadata(session)

    with transaction(session):
        if not events.event_exists(event_id):
            raise NotFoundError(f"Event {event_id} not found")
        lock_event(session, event_id)

        record = get_record(session, event_id, user_id)
        if record is None:
            outcome = Cancelled(removed=False)
        else:
            previous = record.status
            session.delete(record)
            session.flush()

            promoted = None
            if previous == RsvpStatus.going:
                promoted = on_slot_vacated(session, event_id, events)
            elif previous == RsvpStatus.waitlisted:
                resequence(session, event_id)
            outcome = Cancelled(promoted_user_id=promoted.user_id if promoted else None)

    logger.info(
        f"User {user_id} cancelled RSVP for event {event_id} "
        f"(removed={outcome.removed}, promoted={outcome.promoted_user_id})"
    )
    return outcome
