"""Day-of attendance confirmation.

On the day of an event, every going attendee is asked once whether they are
still coming. They can confirm, which only records the answer, or bail out,
which gives their slot to the head of the waitlist.

The sweep that sends the prompts is triggered externally (the background
scheduler or ``POST /sweep/confirmations``). It only selects records whose
``confirmation_sent_at`` is unset, so running it repeatedly is safe.
"""
import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlmodel import Session, select

from rsvp.attendance.collaborators import NotificationDispatcher
from rsvp.attendance.errors import (
    AuthorizationError,
    InvalidStateError,
    StoreError,
    ValidationError,
)
from rsvp.attendance.outcomes import AttendanceConfirmed, BailedOut, SweepResult
from rsvp.attendance.store import get_record_by_id, lock_event, transaction
from rsvp.attendance.waitlist import on_slot_vacated
from rsvp.core.config import settings
from rsvp.models import AttendanceRecord, ConfirmationStatus, Event, RsvpStatus

logger = logging.getLogger(__name__)

CONFIRMATION_REQUESTED = "attendance.confirmation_requested"
MAX_REASON_LENGTH = 500


def _load_for_response(
    session: Session, record_id: UUID, caller_user_id: int
) -> AttendanceRecord:
    """Load a going record owned by the caller, with its event locked.

    The event is locked before the record is re-read so that the lock order
    matches RSVP writes.
    """
    record = get_record_by_id(session, record_id)
    lock_event(session, record.event_id)
    record = get_record_by_id(session, record_id)

    if record.user_id != caller_user_id:
        raise AuthorizationError("Not authorized to respond for this attendance record")
    if record.status != RsvpStatus.going:
        raise InvalidStateError(
            f"Only going attendance can be confirmed (current status: {record.status.value})"
        )
    return record


def confirm_attendance(
    session: Session, record_id: UUID, caller_user_id: int
) -> AttendanceConfirmed:
    """Record that the attendee is still coming.

    Raises:
        NotFoundError: Unknown record.
        AuthorizationError: The caller does not own the record.
        InvalidStateError: The record is not going.
    """
    with transaction(session):
        record = _load_for_response(session, record_id, caller_user_id)
        if record.confirmation_status != ConfirmationStatus.confirmed:
            now = datetime.now(UTC)
            record.confirmation_status = ConfirmationStatus.confirmed
            record.confirmation_response_at = now
            record.updated_at = now
            session.add(record)
        outcome = AttendanceConfirmed(record_id=record.id, event_id=record.event_id)

    logger.info(f"User {caller_user_id} confirmed attendance record {record_id}")
    return outcome


def bail_out(
    session: Session,
    record_id: UUID,
    caller_user_id: int,
    reason: str | None = None,
) -> BailedOut:
    """Give up a going slot and promote the next waitlisted attendee.

    The record becomes "not_going" with confirmation status "bailed_out";
    the promotion runs in the same transaction.

    Raises:
        ValidationError: The reason is too long.
        NotFoundError: Unknown record.
        AuthorizationError: The caller does not own the record.
        InvalidStateError: The record is not going.
    """
    reason = reason.strip() if reason else None
    if reason and len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"Reason must be at most {MAX_REASON_LENGTH} characters")

    with transaction(session):
        record = _load_for_response(session, record_id, caller_user_id)
        now = datetime.now(UTC)
        record.status = RsvpStatus.not_going
        record.attendance_mode = None
        record.confirmation_status = ConfirmationStatus.bailed_out
        record.confirmation_response_at = now
        record.bail_out_reason = reason or None
        record.updated_at = now
        session.add(record)
        session.flush()

        promoted = on_slot_vacated(session, record.event_id)
        outcome = BailedOut(
            record_id=record.id,
            event_id=record.event_id,
            promoted_user_id=promoted.user_id if promoted else None,
        )

    logger.info(
        f"User {caller_user_id} bailed out of attendance record {record_id} "
        f"(promoted={outcome.promoted_user_id})"
    )
    return outcome


def build_confirmation_prompt(record: AttendanceRecord, event: Event) -> dict:
    """Notification payload asking the attendee to confirm or bail out."""
    base = settings.public_base_url.rstrip("/")
    return {
        "record_id": str(record.id),
        "event_id": str(event.id),
        "subject": f"Still coming to {event.title}?",
        "event_title": event.title,
        "event_start": event.start_time.isoformat(),
        "confirm_url": f"{base}/attendance/{record.id}/confirm",
        "bail_out_url": f"{base}/attendance/{record.id}/bail-out",
    }


def fetch_due_confirmations(
    session: Session,
    now: datetime,
    event_id: UUID | None = None,
    limit: int | None = None,
) -> list[tuple[AttendanceRecord, Event]]:
    """Going records not yet prompted whose event starts later today (UTC)."""
    start_of_today = datetime(now.year, now.month, now.day, tzinfo=UTC)
    start_of_tomorrow = start_of_today + timedelta(days=1)

    statement = (
        select(AttendanceRecord, Event)
        .join(Event, AttendanceRecord.event_id == Event.id)
        .where(AttendanceRecord.status == RsvpStatus.going)
        .where(AttendanceRecord.confirmation_sent_at == None)  # noqa: E711
        .where(Event.start_time >= start_of_today)
        .where(Event.start_time < start_of_tomorrow)
        .where(Event.start_time > now)
    )
    if event_id is not None:
        statement = statement.where(AttendanceRecord.event_id == event_id)
    statement = statement.order_by(Event.start_time, AttendanceRecord.created_at).limit(
        limit or settings.confirmation_batch_size
    )
    return list(session.exec(statement).all())


def run_confirmation_sweep(
    session: Session,
    dispatcher: NotificationDispatcher,
    now: datetime | None = None,
    event_id: UUID | None = None,
) -> SweepResult:
    """Send day-of confirmation prompts that are due.

    Each prompt is dispatched first and then marked as sent. A record whose
    dispatch or marking fails counts as failed and stays eligible for the
    next sweep.

    Returns:
        SweepResult with processed, sent and failed counts.
    """
    now = (now or datetime.now(UTC)).astimezone(UTC)

    # Close the read transaction before dispatching
    with transaction(session):
        prompts = [
            (record.id, record.user_id, build_confirmation_prompt(record, event))
            for record, event in fetch_due_confirmations(session, now, event_id)
        ]

    result = SweepResult(processed=len(prompts))
    if not prompts:
        return result

    logger.info(f"Processing {len(prompts)} confirmation prompts")
    for record_id, user_id, payload in prompts:
        try:
            dispatcher.notify(user_id, CONFIRMATION_REQUESTED, payload)
        except Exception as e:
            result.failed += 1
            logger.error(f"Failed to send confirmation prompt for record {record_id}: {e}")
            continue

        try:
            with transaction(session):
                record = session.get(AttendanceRecord, record_id)
                if record is not None and record.confirmation_sent_at is None:
                    record.confirmation_sent_at = now
                    session.add(record)
        except StoreError as e:
            result.failed += 1
            logger.error(f"Failed to mark confirmation prompt sent for record {record_id}: {e}")
            continue
        result.sent += 1

    logger.info(f"Confirmation sweep complete: {result.model_dump()}")
    return result


def get_confirmation_stats(session: Session, event_id: UUID) -> dict:
    """Day-of confirmation counts for an event.

    Going attendees count as pending or confirmed; attendees who bailed out
    are counted separately. ``response_rate`` is the rounded percentage of
    attendees who answered either way.
    """
    statuses = session.exec(
        select(AttendanceRecord.status, AttendanceRecord.confirmation_status)
        .where(AttendanceRecord.event_id == event_id)
    ).all()

    stats = {"total": 0, "pending": 0, "confirmed": 0, "bailed_out": 0}
    for status, confirmation in statuses:
        if confirmation == ConfirmationStatus.bailed_out:
            stats["bailed_out"] += 1
        elif status != RsvpStatus.going:
            continue
        elif confirmation == ConfirmationStatus.confirmed:
            stats["confirmed"] += 1
        else:
            stats["pending"] += 1
        stats["total"] += 1

    responded = stats["confirmed"] + stats["bailed_out"]
    stats["response_rate"] = round(responded / stats["total"] * 100) if stats["total"] else 0
    return stats
