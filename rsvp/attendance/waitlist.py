"""Waitlist allocation and promotion.

Positions are dense per event: the waitlisted records of an event always
hold exactly the positions 1..N. New entries join at N + 1; whenever an
entry leaves (promotion, cancellation, status change) the remainder is
renumbered in its existing order.

``assign_next_position``, ``resequence`` and ``on_slot_vacated`` never open
their own transaction. They run inside the caller's unit of work, after the
caller has locked the event with :func:`rsvp.attendance.store.lock_event`.
"""
import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session, select

from rsvp.attendance.collaborators import DatabaseEventMetadata, EventMetadataProvider
from rsvp.attendance.outcomes import ReconcileResult
from rsvp.attendance.store import (
    count_going,
    lock_event,
    transaction,
    waitlisted_records,
)
from rsvp.models import AttendanceRecord, ConfirmationStatus, RsvpStatus

logger = logging.getLogger(__name__)


def assign_next_position(session: Session, event_id: UUID) -> int:
    """Next free waitlist position for the event (1 when the list is empty)."""
    highest = session.exec(
        select(func.max(AttendanceRecord.waitlist_position))
        .where(AttendanceRecord.event_id == event_id)
        .where(AttendanceRecord.status == RsvpStatus.waitlisted)
    ).one()
    return (highest or 0) + 1


def resequence(session: Session, event_id: UUID) -> int:
    """Renumber the event's waitlist to 1..N, keeping relative order.

    Order is taken from the current positions (ties broken by join time),
    so this works whichever entry was removed. Rows are flushed one at a
    time in ascending order: each new position is at most the old one, so
    no intermediate state collides with the unique position index.

    Returns:
        Number of records whose position changed.
    """
    changed = 0
    for expected, record in enumerate(waitlisted_records(session, event_id), start=1):
        if record.waitlist_position != expected:
            record.waitlist_position = expected
            session.add(record)
            session.flush()
            changed += 1
    if changed:
        logger.debug(f"Resequenced {changed} waitlist entries for event {event_id}")
    return changed


def _promote_head(session: Session, event_id: UUID) -> AttendanceRecord | None:
    """Move the first waitlisted record to going and close the gap."""
    queue = waitlisted_records(session, event_id)
    if not queue:
        return None

    promoted = queue[0]
    previous_position = promoted.waitlist_position
    promoted.status = RsvpStatus.going
    promoted.waitlist_position = None
    promoted.confirmation_status = ConfirmationStatus.pending
    promoted.updated_at = datetime.now(UTC)
    session.add(promoted)
    session.flush()

    resequence(session, event_id)
    logger.info(
        f"Promoted user {promoted.user_id} from waitlist position "
        f"{previous_position} to going for event {event_id}"
    )
    return promoted


def on_slot_vacated(
    session: Session,
    event_id: UUID,
    events: EventMetadataProvider | None = None,
) -> AttendanceRecord | None:
    """Fill a freed confirmed slot from the head of the waitlist.

    No-op for unlimited events, when the waitlist is empty, or when the
    event is still at capacity.

    Returns:
        The promoted record, or None if nobody was promoted.
    """
    events = events or DatabaseEventMetadata(session)
    capacity = events.get_capacity(event_id)
    if capacity is None:
        return None
    if count_going(session, event_id) >= capacity:
        return None
    return _promote_head(session, event_id)


def reconcile_waitlist(
    session: Session,
    event_id: UUID,
    events: EventMetadataProvider | None = None,
) -> ReconcileResult:
    """Repair one event's waitlist and fill any open slots.

    Renumbers positions that drifted from 1..N, then promotes in FIFO order
    while the event has free capacity (for instance after its capacity was
    raised). Runs as one transaction.
    """
    events = events or DatabaseEventMetadata(session)
    with transaction(session):
        lock_event(session, event_id)
        renumbered = resequence(session, event_id)
        promoted = 0
        capacity = events.get_capacity(event_id)
        while capacity is None or count_going(session, event_id) < capacity:
            if _promote_head(session, event_id) is None:
                break
            promoted += 1
        result = ReconcileResult(events=1, renumbered=renumbered, promoted=promoted)

    if renumbered or promoted:
        logger.warning(
            f"Reconciled waitlist for event {event_id}: "
            f"{renumbered} renumbered, {promoted} promoted"
        )
    return result


def reconcile_all(session: Session) -> ReconcileResult:
    """Reconcile every event that currently has a waitlist."""
    event_ids = session.exec(
        select(AttendanceRecord.event_id)
        .where(AttendanceRecord.status == RsvpStatus.waitlisted)
        .distinct()
    ).all()

    totals = ReconcileResult()
    for event_id in event_ids:
        result = reconcile_waitlist(session, event_id)
        totals.events += result.events
        totals.renumbered += result.renumbered
        totals.promoted += result.promoted
    return totals
