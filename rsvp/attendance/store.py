"""Access to attendance records and the transactions around them.

Every attendance operation that reads capacity or waitlist state and then
writes based on it runs inside :func:`transaction` after calling
:func:`lock_event`. The event row lock (or SQLite's immediate write lock)
serializes those operations per event across all service instances, so the
going-count, the waitlist tail and the promotee are read and written as one
unit.
"""
import logging
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from rsvp.attendance.errors import NotFoundError, StoreError
from rsvp.models import AttendanceRecord, Event, RsvpStatus, User

logger = logging.getLogger(__name__)


@contextmanager
def transaction(session: Session):
    """Commit the enclosed work as one unit, or roll all of it back.

    Database failures, including constraint violations raised at commit,
    surface as :class:`StoreError`. Any other exception is re-raised
    unchanged after the rollback.
    """
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Attendance transaction failed: {e}")
        raise StoreError("Attendance store could not complete the operation") from e
    except Exception:
        session.rollback()
        raise


def lock_event(session: Session, event_id: UUID) -> Event:
    """Lock the event row for the rest of the transaction.

    Raises:
        NotFoundError: If the event does not exist.
    """
    event = session.exec(
        select(Event)
        .where(Event.id == event_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    return event


def user_exists(session: Session, user_id: int) -> bool:
    return session.get(User, user_id) is not None


def get_record(session: Session, event_id: UUID, user_id: int) -> AttendanceRecord | None:
    """Fetch the record for an (event, user) pair, reloading cached state."""
    return session.exec(
        select(AttendanceRecord)
        .where(AttendanceRecord.event_id == event_id)
        .where(AttendanceRecord.user_id == user_id)
        .execution_options(populate_existing=True)
    ).first()


def get_record_by_id(session: Session, record_id: UUID) -> AttendanceRecord:
    """Fetch a record by id.

    Raises:
        NotFoundError: If no such record exists.
    """
    record = session.exec(
        select(AttendanceRecord)
        .where(AttendanceRecord.id == record_id)
        .execution_options(populate_existing=True)
    ).first()
    if record is None:
        raise NotFoundError(f"Attendance record {record_id} not found")
    return record


def count_going(session: Session, event_id: UUID) -> int:
    """Number of records currently holding a confirmed slot for the event.

    Always recomputed from the rows; callers run it inside the same
    transaction as the write that depends on it.
    """
    return session.exec(
        select(func.count())
        .select_from(AttendanceRecord)
        .where(AttendanceRecord.event_id == event_id)
        .where(AttendanceRecord.status == RsvpStatus.going)
    ).one()


def waitlisted_records(session: Session, event_id: UUID) -> list[AttendanceRecord]:
    """Waitlisted records for the event in FIFO order."""
    return list(
        session.exec(
            select(AttendanceRecord)
            .where(AttendanceRecord.event_id == event_id)
            .where(AttendanceRecord.status == RsvpStatus.waitlisted)
            .order_by(
                AttendanceRecord.waitlist_position,
                AttendanceRecord.created_at,
                AttendanceRecord.id,
            )
            .execution_options(populate_existing=True)
        ).all()
    )
