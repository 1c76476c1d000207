"""RSVP routes for joining, changing and cancelling attendance."""
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlmodel import Session

from rsvp.attendance.collaborators import NotificationDispatcher, get_dispatcher
from rsvp.attendance.outcomes import Cancelled, Waitlisted
from rsvp.attendance.rsvp import apply_rsvp, cancel_rsvp
from rsvp.attendance.summary import get_attendance_summary
from rsvp.core.database import get_session
from rsvp.models import RsvpStatus

router = APIRouter(prefix="/events/{event_id}", tags=["rsvp"])


class RsvpRequest(BaseModel):
    user_id: int
    status: str  # going, interested, not_going
    attendance_mode: str | None = None  # in_person, online (hybrid events)


class CancelRequest(BaseModel):
    user_id: int


def _notify_promoted(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    event_id: UUID,
    promoted_user_id: int | None,
) -> None:
    if promoted_user_id is not None:
        background_tasks.add_task(
            dispatcher.notify,
            promoted_user_id,
            "waitlist.promoted",
            {"event_id": str(event_id)},
        )


@router.post("/rsvp")
def submit_rsvp(
    event_id: UUID,
    payload: RsvpRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Set or update a user's RSVP for an event.

    Returns ``{"kind": "confirmed", ...}`` when the status was written, or
    ``{"kind": "waitlisted", "position": N}`` when the event is full. Going
    and waitlisted outcomes are announced to the user in the background.
    """
    outcome = apply_rsvp(
        session,
        event_id,
        payload.user_id,
        payload.status,
        payload.attendance_mode,
    )

    if isinstance(outcome, Waitlisted):
        background_tasks.add_task(
            dispatcher.notify,
            payload.user_id,
            "rsvp.waitlisted",
            {"event_id": str(event_id), "position": outcome.position},
        )
    elif outcome.status == RsvpStatus.going:
        background_tasks.add_task(
            dispatcher.notify,
            payload.user_id,
            "rsvp.going",
            {"event_id": str(event_id)},
        )
    return outcome


@router.post("/rsvp/cancel")
def cancel(
    event_id: UUID,
    payload: CancelRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Cancelled:
    """
    Cancel a user's RSVP.

    Deletes the attendance record. If the user was going, the first person
    on the waitlist is promoted before this returns and is notified in the
    background.
    """
    outcome = cancel_rsvp(session, event_id, payload.user_id)
    _notify_promoted(background_tasks, dispatcher, event_id, outcome.promoted_user_id)
    return outcome


@router.get("/attendance")
def attendance_summary(event_id: UUID, session: Session = Depends(get_session)):
    """
    Get attendance for an event.

    Returns counts per RSVP status, remaining capacity, the ordered waitlist
    and day-of confirmation statistics.
    """
    return get_attendance_summary(session, event_id)
