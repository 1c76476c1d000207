"""Day-of confirmation routes: confirm or bail out of a going RSVP."""
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlmodel import Session

from rsvp.attendance.collaborators import NotificationDispatcher, get_dispatcher
from rsvp.attendance.confirmation import bail_out, confirm_attendance
from rsvp.attendance.outcomes import AttendanceConfirmed, BailedOut
from rsvp.core.database import get_session

router = APIRouter(prefix="/attendance", tags=["attendance"])


class ConfirmRequest(BaseModel):
    user_id: int


class BailOutRequest(BaseModel):
    user_id: int
    reason: str | None = None


@router.post("/{record_id}/confirm")
def confirm(
    record_id: UUID,
    payload: ConfirmRequest,
    session: Session = Depends(get_session),
) -> AttendanceConfirmed:
    """
    Confirm the caller is still attending.

    Returns 403 if the record belongs to someone else and 409 if the record
    is not a going RSVP.
    """
    return confirm_attendance(session, record_id, payload.user_id)


@router.post("/{record_id}/bail-out")
def bail(
    record_id: UUID,
    payload: BailOutRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BailedOut:
    """
    Bail out of a going RSVP.

    Frees the slot and promotes the first waitlisted user, who is notified
    in the background. Same ownership and state checks as confirm.
    """
    outcome = bail_out(session, record_id, payload.user_id, payload.reason)
    if outcome.promoted_user_id is not None:
        background_tasks.add_task(
            dispatcher.notify,
            outcome.promoted_user_id,
            "waitlist.promoted",
            {"event_id": str(outcome.event_id)},
        )
    return outcome
