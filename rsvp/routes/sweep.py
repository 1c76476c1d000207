"""Sweep routes for triggering and monitoring background attendance jobs."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import Session

from rsvp.attendance.collaborators import NotificationDispatcher, get_dispatcher
from rsvp.attendance.confirmation import run_confirmation_sweep
from rsvp.attendance.errors import AttendanceError
from rsvp.attendance.outcomes import ReconcileResult, SweepResult
from rsvp.attendance.waitlist import reconcile_all
from rsvp.core.config import settings
from rsvp.core.database import get_session
from rsvp.core.scheduler import SweepState

router = APIRouter(prefix="/sweep", tags=["sweep"])


@router.post("/confirmations")
def trigger_confirmation_sweep(
    event_id: UUID | None = None,
    session: Session = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SweepResult:
    """
    Manually run the day-of confirmation sweep.

    Sends prompts to going attendees of events starting later today who have
    not been prompted yet, optionally limited to one event. Returns the
    processed, sent and failed counts.
    """
    try:
        result = run_confirmation_sweep(session, dispatcher, event_id=event_id)
    except AttendanceError as e:
        SweepState.record_failure("confirmations", str(e))
        raise
    SweepState.record_success("confirmations", result.model_dump())
    return result


@router.post("/reconcile")
def trigger_reconcile(session: Session = Depends(get_session)) -> ReconcileResult:
    """
    Manually run the waitlist consistency sweep.

    Renumbers waitlists that drifted from 1..N and promotes waitlisted users
    into any free capacity.
    """
    try:
        result = reconcile_all(session)
    except AttendanceError as e:
        SweepState.record_failure("reconcile", str(e))
        raise
    SweepState.record_success("reconcile", result.model_dump())
    return result


@router.get("/status")
def sweep_status():
    """
    Get background sweep status.

    Returns the schedule intervals and, per sweep, the time, outcome and
    error of its last run.
    """
    status = {}
    for name in ("confirmations", "reconcile"):
        run = SweepState.get_status(name)
        status[name] = {
            "last_run_time": run["last_run_time"].isoformat() if run["last_run_time"] else None,
            "last_run_success": run["success"],
            "last_run_result": run["result"],
            "last_run_error": run["error"],
        }
    return {
        "confirmation_sweep_interval_minutes": settings.confirmation_sweep_interval_minutes,
        "reconcile_interval_minutes": settings.reconcile_interval_minutes,
        "confirmation_batch_size": settings.confirmation_batch_size,
        **status,
    }
