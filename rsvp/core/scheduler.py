"""Background job scheduler for attendance sweeps."""
import logging
from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session

from rsvp.attendance.collaborators import get_dispatcher
from rsvp.attendance.confirmation import run_confirmation_sweep
from rsvp.attendance.waitlist import reconcile_all
from rsvp.core.config import settings
from rsvp.core.database import engine

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


class SweepState:
    """Track the last run of each sweep (confirmations, reconcile)."""

    _runs: dict[str, dict] = {}

    @classmethod
    def record_success(cls, name: str, result: dict) -> None:
        cls._runs[name] = {
            "last_run_time": datetime.now(UTC),
            "success": True,
            "result": result,
            "error": None,
        }

    @classmethod
    def record_failure(cls, name: str, error: str) -> None:
        cls._runs[name] = {
            "last_run_time": datetime.now(UTC),
            "success": False,
            "result": None,
            "error": error,
        }

    @classmethod
    def get_status(cls, name: str) -> dict:
        return cls._runs.get(
            name,
            {"last_run_time": None, "success": None, "result": None, "error": None},
        )

    @classmethod
    def clear(cls) -> None:
        cls._runs.clear()


def confirmation_sweep_job():
    """Background day-of confirmation sweep."""
    try:
        with Session(engine) as session:
            result = run_confirmation_sweep(session, get_dispatcher())
        SweepState.record_success("confirmations", result.model_dump())
        logger.info(f"Background confirmation sweep completed: {result.model_dump()}")
    except Exception as e:
        SweepState.record_failure("confirmations", str(e))
        logger.error(f"Background confirmation sweep failed: {e}")


def reconcile_job():
    """Background waitlist consistency sweep."""
    try:
        with Session(engine) as session:
            result = reconcile_all(session)
        SweepState.record_success("reconcile", result.model_dump())
        logger.info(f"Background waitlist reconcile completed: {result.model_dump()}")
    except Exception as e:
        SweepState.record_failure("reconcile", str(e))
        logger.error(f"Background waitlist reconcile failed: {e}")


def start_scheduler():
    """Start the background scheduler."""
    scheduler.add_job(
        confirmation_sweep_job,
        trigger=IntervalTrigger(minutes=settings.confirmation_sweep_interval_minutes),
        id="confirmation_sweep",
        replace_existing=True,
    )
    scheduler.add_job(
        reconcile_job,
        trigger=IntervalTrigger(minutes=settings.reconcile_interval_minutes),
        id="waitlist_reconcile",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started, confirmation sweep every "
        f"{settings.confirmation_sweep_interval_minutes} minutes, reconcile every "
        f"{settings.reconcile_interval_minutes} minutes"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
