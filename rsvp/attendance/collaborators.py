"""Interfaces to the services the attendance engine depends on.

Event metadata and notification delivery belong to other parts of the
product. The engine only talks to them through the two protocols below; the
default implementations read the mirrored event table and write prompts to
the application log.
"""
import logging
from typing import Any, Protocol
from uuid import UUID

from sqlmodel import Session

from rsvp.models import Event

logger = logging.getLogger(__name__)


class EventMetadataProvider(Protocol):
    def get_capacity(self, event_id: UUID) -> int | None: ...

    def event_exists(self, event_id: UUID) -> bool: ...

    def supports_dual_mode(self, event_id: UUID) -> bool: ...


class NotificationDispatcher(Protocol):
    def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None: ...


class DatabaseEventMetadata:
    """Event metadata read from the local event table."""

    def __init__(self, session: Session):
        self.session = session

    def _get(self, event_id: UUID) -> Event | None:
        return self.session.get(Event, event_id)

    def get_capacity(self, event_id: UUID) -> int | None:
        event = self._get(event_id)
        return event.capacity if event else None

    def event_exists(self, event_id: UUID) -> bool:
        return self._get(event_id) is not None

    def supports_dual_mode(self, event_id: UUID) -> bool:
        event = self._get(event_id)
        return bool(event and event.is_dual_mode)


class LoggingNotificationDispatcher:
    """Dispatcher that records notifications in the log.

    Used until a delivery transport (push, email) is wired in.
    """

    def notify(self, user_id: int, event_type: str, payload: dict[str, Any]) -> None:
        logger.info(f"Notification {event_type} for user {user_id}: {payload}")


def get_dispatcher() -> NotificationDispatcher:
    """Dependency for the notification dispatcher."""
    return LoggingNotificationDispatcher()
