"""Tests for waitlist allocation, promotion and reconciliation."""

from uuid import uuid4

import pytest
from sqlmodel import Session, select

from rsvp.attendance.errors import NotFoundError
from rsvp.attendance.rsvp import apply_rsvp
from rsvp.attendance.store import lock_event, transaction
from rsvp.attendance.waitlist import (
    assign_next_position,
    on_slot_vacated,
    reconcile_all,
    reconcile_waitlist,
    resequence,
)
from rsvp.models import AttendanceRecord, ConfirmationStatus, Event, RsvpStatus


def add_waitlisted(session: Session, event: Event, user_id: int, position: int) -> None:
    session.add(
        AttendanceRecord(
            event_id=event.id,
            user_id=user_id,
            status=RsvpStatus.waitlisted,
            waitlist_position=position,
        )
    )
    session.commit()


def positions_by_user(session: Session, event: Event) -> dict[int, int]:
    records = session.exec(
        select(AttendanceRecord)
        .where(AttendanceRecord.event_id == event.id)
        .where(AttendanceRecord.status == RsvpStatus.waitlisted)
    ).all()
    return {r.user_id: r.waitlist_position for r in records}


def status_of(session: Session, event: Event, user_id: int) -> RsvpStatus:
    return session.exec(
        select(AttendanceRecord.status)
        .where(AttendanceRecord.event_id == event.id)
        .where(AttendanceRecord.user_id == user_id)
    ).one()


class TestAssignNextPosition:
    """Tests for waitlist tail allocation."""

    def test_empty_waitlist_starts_at_one(self, session: Session, limited_event: Event):
        """Test the first position handed out."""
        assert assign_next_position(session, limited_event.id) == 1

    def test_appends_after_highest(self, session: Session, limited_event: Event):
        """Test that new entries join after the current tail."""
        add_waitlisted(session, limited_event, 2, 1)
        add_waitlisted(session, limited_event, 3, 2)
        assert assign_next_position(session, limited_event.id) == 3

    def test_ignores_other_events(self, session: Session, make_event, users):
        """Test that positions are allocated per event."""
        first, second = make_event(capacity=1), make_event(capacity=1)
        add_waitlisted(session, first, 2, 1)
        assert assign_next_position(session, second.id) == 1


class TestResequence:
    """Tests for renumbering a waitlist to 1..N."""

    def test_closes_gaps_in_order(self, session: Session, limited_event: Event):
        """Test that gapped positions become dense without reordering."""
        add_waitlisted(session, limited_event, 4, 2)
        add_waitlisted(session, limited_event, 5, 5)
        add_waitlisted(session, limited_event, 6, 9)

        with transaction(session):
            changed = resequence(session, limited_event.id)

        assert changed == 3
        assert positions_by_user(session, limited_event) == {4: 1, 5: 2, 6: 3}

    def test_dense_waitlist_unchanged(self, session: Session, limited_event: Event):
        """Test that an already dense waitlist is left alone."""
        add_waitlisted(session, limited_event, 2, 1)
        add_waitlisted(session, limited_event, 3, 2)

        with transaction(session):
            changed = resequence(session, limited_event.id)

        assert changed == 0
        assert positions_by_user(session, limited_event) == {2: 1, 3: 2}

    def test_partial_gap(self, session: Session, limited_event: Event):
        """Test that only entries behind a gap move."""
        add_waitlisted(session, limited_event, 2, 1)
        add_waitlisted(session, limited_event, 3, 3)
        add_waitlisted(session, limited_event, 4, 4)

        with transaction(session):
            changed = resequence(session, limited_event.id)

        assert changed == 2
        assert positions_by_user(session, limited_event) == {2: 1, 3: 2, 4: 3}


class TestOnSlotVacated:
    """Tests for promoting into a freed slot."""

    def test_no_promotion_while_full(self, session: Session, limited_event: Event):
        """Test that nothing happens when the event is still at capacity."""
        apply_rsvp(session, limited_event.id, 1, "going")
        apply_rsvp(session, limited_event.id, 2, "going")

        with transaction(session):
            lock_event(session, limited_event.id)
            promoted = on_slot_vacated(session, limited_event.id)

        assert promoted is None
        assert status_of(session, limited_event, 2) == RsvpStatus.waitlisted

    def test_no_promotion_for_unlimited_event(self, session: Session, unlimited_event: Event):
        """Test that unlimited events have nothing to promote."""
        add_waitlisted(session, unlimited_event, 2, 1)

        with transaction(session):
            promoted = on_slot_vacated(session, unlimited_event.id)

        assert promoted is None

    def test_empty_waitlist(self, session: Session, limited_event: Event):
        """Test that a freed slot with nobody waiting stays free."""
        with transaction(session):
            promoted = on_slot_vacated(session, limited_event.id)
        assert promoted is None

    def test_promotes_head_when_slot_free(self, session: Session, limited_event: Event):
        """Test that the head moves to going with a pending confirmation."""
        add_waitlisted(session, limited_event, 5, 1)
        add_waitlisted(session, limited_event, 6, 2)

        with transaction(session):
            lock_event(session, limited_event.id)
            promoted = on_slot_vacated(session, limited_event.id)
            promoted_user = promoted.user_id

        assert promoted_user == 5
        record = session.exec(
            select(AttendanceRecord).where(AttendanceRecord.user_id == 5)
        ).one()
        assert record.status == RsvpStatus.going
        assert record.waitlist_position is None
        assert record.confirmation_status == ConfirmationStatus.pending
        assert positions_by_user(session, limited_event) == {6: 1}


class TestReconcile:
    """Tests for the waitlist consistency sweep."""

    def test_capacity_raise_promotes_in_order(self, session: Session, limited_event: Event):
        """Test that raising capacity fills the new slots from the head."""
        for uid in (1, 2, 3, 4):
            apply_rsvp(session, limited_event.id, uid, "going")

        limited_event.capacity = 3
        session.add(limited_event)
        session.commit()

        result = reconcile_waitlist(session, limited_event.id)

        assert result.promoted == 2
        assert result.renumbered == 0
        assert status_of(session, limited_event, 2) == RsvpStatus.going
        assert status_of(session, limited_event, 3) == RsvpStatus.going
        assert positions_by_user(session, limited_event) == {4: 1}

    def test_renumbers_drifted_positions(self, session: Session, limited_event: Event):
        """Test that positions written out of band are repaired."""
        apply_rsvp(session, limited_event.id, 1, "going")
        add_waitlisted(session, limited_event, 2, 3)
        add_waitlisted(session, limited_event, 3, 7)

        result = reconcile_waitlist(session, limited_event.id)

        assert result.renumbered == 2
        assert result.promoted == 0
        assert positions_by_user(session, limited_event) == {2: 1, 3: 2}

    def test_consistent_event_untouched(self, session: Session, limited_event: Event):
        """Test that a healthy waitlist reports no changes."""
        apply_rsvp(session, limited_event.id, 1, "going")
        apply_rsvp(session, limited_event.id, 2, "going")

        result = reconcile_waitlist(session, limited_event.id)

        assert (result.events, result.renumbered, result.promoted) == (1, 0, 0)

    def test_unknown_event(self, session: Session, users):
        """Test reconciling a missing event."""
        with pytest.raises(NotFoundError):
            reconcile_waitlist(session, uuid4())

    def test_reconcile_all_sums_results(self, session: Session, make_event, users):
        """Test that every event with a waitlist is visited."""
        first, second, quiet = make_event(capacity=1), make_event(capacity=1), make_event()
        apply_rsvp(session, first.id, 1, "going")
        add_waitlisted(session, first, 2, 2)
        add_waitlisted(session, second, 3, 1)
        apply_rsvp(session, quiet.id, 4, "going")

        result = reconcile_all(session)

        assert result.events == 2
        assert result.renumbered == 1
        assert result.promoted == 1
        assert positions_by_user(session, first) == {2: 1}
        assert status_of(session, second, 3) == RsvpStatus.going
