"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel
from sqlmodel.pool import StaticPool

from rsvp.attendance.collaborators import get_dispatcher
from rsvp.core.database import build_engine, get_session
from rsvp.main import app
from rsvp.models import Event, EventType, User


class RecordingDispatcher:
    """Notification dispatcher that keeps every notification in memory."""

    def __init__(self, fail_for: set[int] | None = None):
        self.sent: list[tuple[int, str, dict]] = []
        self.fail_for = fail_for or set()

    def notify(self, user_id: int, event_type: str, payload: dict) -> None:
        if user_id in self.fail_for:
            raise RuntimeError(f"push gateway rejected user {user_id}")
        self.sent.append((user_id, event_type, payload))

    def of_type(self, event_type: str) -> list[tuple[int, str, dict]]:
        return [n for n in self.sent if n[1] == event_type]


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create a new database session for each test."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="dispatcher")
def dispatcher_fixture() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture(name="client")
def client_fixture(session: Session, dispatcher: RecordingDispatcher):
    """Create a test client with the test database session."""

    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="users")
def users_fixture(session: Session) -> list[User]:
    """Create twelve users with ids 1..12."""
    users = [
        User(id=i, display_name=f"User {i}", email=f"user{i}@example.com")
        for i in range(1, 13)
    ]
    for user in users:
        session.add(user)
    session.commit()
    return users


@pytest.fixture(name="make_event")
def make_event_fixture(session: Session):
    """Factory for events; defaults to an unlimited in-person event in two days."""

    def _make_event(
        capacity: int | None = None,
        event_type: EventType = EventType.in_person,
        start_time: datetime | None = None,
        title: str = "Board Game Night",
    ) -> Event:
        start_time = start_time or datetime.now(UTC) + timedelta(days=2)
        event = Event(
            title=title,
            start_time=start_time,
            end_time=start_time + timedelta(hours=3),
            capacity=capacity,
            event_type=event_type,
        )
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    return _make_event


@pytest.fixture(name="limited_event")
def limited_event_fixture(make_event, users) -> Event:
    """An event with room for a single attendee."""
    return make_event(capacity=1)


@pytest.fixture(name="unlimited_event")
def unlimited_event_fixture(make_event, users) -> Event:
    return make_event(capacity=None)


@pytest.fixture(name="hybrid_event")
def hybrid_event_fixture(make_event, users) -> Event:
    return make_event(capacity=10, event_type=EventType.hybrid, title="Hybrid Meetup")
