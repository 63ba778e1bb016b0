"""Service-level tests for the event store's attendee consistency rules."""
import threading
import time

import pytest
from sqlalchemy import event as sa_event
from sqlalchemy.exc import OperationalError

from event_manager.errors import AuthorizationError, InternalError, NotFoundError, ValidationError
from event_manager.models.attendee import AttendanceStatus, EventAttendee
from event_manager.models.event import Event
from event_manager.services import event_service, identity_service

FIELDS = {"title": "Standup", "date": "2024-01-10", "time": "09:00", "location": "Room 1"}


@pytest.fixture
def users(db):
    """Organizer plus attendees A, B and C."""
    return {
        key: identity_service.register(db, name, f"{key}@example.com", "secret123")
        for key, name in [("org", "Organizer"), ("a", "Ann"), ("b", "Ben"), ("c", "Cat")]
    }


@pytest.fixture
def event(db, users):
    return event_service.create_event(db, users["org"].id, dict(FIELDS))


def _attendee_set(db, event_id):
    return {row.user_id for row in event_service.list_attendees(db, event_id)}


class TestCreate:
    @pytest.mark.parametrize("missing", ["title", "date", "time", "location"])
    def test_required_fields(self, db, users, missing):
        fields = dict(FIELDS)
        fields[missing] = ""
        with pytest.raises(ValidationError):
            event_service.create_event(db, users["org"].id, fields)
        assert db.query(Event).count() == 0

    def test_description_is_optional(self, db, users):
        event = event_service.create_event(db, users["org"].id, dict(FIELDS))
        assert event.description is None
        assert event.organizer_id == users["org"].id

    def test_unknown_attendee_leaves_no_event(self, db, users):
        with pytest.raises(NotFoundError):
            event_service.create_event(db, users["org"].id, dict(FIELDS), attendee_ids=[users["a"].id, "ghost"])
        assert db.query(Event).count() == 0
        assert db.query(EventAttendee).count() == 0


class TestSetAttendees:
    def test_replacement_is_exact(self, db, users, event):
        a, b, c = users["a"].id, users["b"].id, users["c"].id
        event_service.set_attendees(db, event.id, users["org"].id, {a, b})
        event_service.set_attendees(db, event.id, users["org"].id, {b, c})
        assert _attendee_set(db, event.id) == {b, c}
        assert db.query(EventAttendee).filter_by(event_id=event.id, user_id=b).count() == 1

    def test_idempotent(self, db, users, event):
        a, b = users["a"].id, users["b"].id
        first = event_service.set_attendees(db, event.id, users["org"].id, [a, b])
        second = event_service.set_attendees(db, event.id, users["org"].id, [a, b])
        assert {x.user_id for x in first} == {x.user_id for x in second} == {a, b}
        assert db.query(EventAttendee).filter_by(event_id=event.id).count() == 2

    def test_duplicates_collapse(self, db, users, event):
        a = users["a"].id
        result = event_service.set_attendees(db, event.id, users["org"].id, [a, a, a])
        assert [x.user_id for x in result] == [a]

    def test_non_organizer_rejected_and_set_unchanged(self, db, users, event):
        a, b = users["a"].id, users["b"].id
        event_service.set_attendees(db, event.id, users["org"].id, [a])
        with pytest.raises(AuthorizationError):
            event_service.set_attendees(db, event.id, a, [a, b])
        assert _attendee_set(db, event.id) == {a}

    def test_unknown_user_rejects_whole_replacement(self, db, users, event):
        a, b = users["a"].id, users["b"].id
        event_service.set_attendees(db, event.id, users["org"].id, [a])
        with pytest.raises(NotFoundError):
            event_service.set_attendees(db, event.id, users["org"].id, [b, "ghost"])
        assert _attendee_set(db, event.id) == {a}

    def test_missing_event(self, db, users):
        with pytest.raises(NotFoundError):
            event_service.set_attendees(db, "nope", users["org"].id, [users["a"].id])

    def test_kept_attendee_keeps_status(self, db, users, event):
        a, b = users["a"].id, users["b"].id
        event_service.set_attendees(db, event.id, users["org"].id, [a])
        event_service.set_rsvp(db, event.id, a, AttendanceStatus.declined)
        event_service.set_attendees(db, event.id, users["org"].id, [a, b])
        statuses = {x.user_id: x.status for x in event_service.list_attendees(db, event.id)}
        assert statuses == {a: AttendanceStatus.declined, b: AttendanceStatus.invited}


class TestUpdate:
    def test_partial_update_leaves_attendees(self, db, users, event):
        a = users["a"].id
        event_service.set_attendees(db, event.id, users["org"].id, [a])
        updated, added = event_service.update_event(db, event.id, users["org"].id, {"time": "10:30"})
        assert updated.time == "10:30"
        assert updated.title == "Standup"
        assert added == []
        assert _attendee_set(db, event.id) == {a}

    def test_update_reports_added_attendees(self, db, users, event):
        a, b = users["a"].id, users["b"].id
        event_service.set_attendees(db, event.id, users["org"].id, [a])
        _, added = event_service.update_event(db, event.id, users["org"].id, {}, attendee_ids=[a, b])
        assert added == [b]

    def test_non_organizer_leaves_event_unchanged(self, db, users, event):
        with pytest.raises(AuthorizationError):
            event_service.update_event(db, event.id, users["a"].id, {"title": "Mine now"})
        db.expire_all()
        assert db.get(Event, event.id).title == "Standup"

    def test_ignores_non_editable_fields(self, db, users, event):
        updated, _ = event_service.update_event(
            db, event.id, users["org"].id, {"organizer_id": users["a"].id, "location": "Roof"},
        )
        assert updated.organizer_id == users["org"].id
        assert updated.location == "Roof"


class TestDelete:
    def test_cascades_attendees(self, db, users, event):
        event_service.set_attendees(db, event.id, users["org"].id, [users["a"].id, users["b"].id])
        event_service.delete_event(db, event.id, users["org"].id)
        assert event_service.list_attendees(db, event.id) == []
        with pytest.raises(NotFoundError):
            event_service.get_event_with_attendees(db, event.id)

    def test_non_organizer_cannot_delete(self, db, users, event):
        with pytest.raises(AuthorizationError):
            event_service.delete_event(db, event.id, users["a"].id)
        assert event_service.get_event_with_attendees(db, event.id).id == event.id


class TestListForUser:
    def test_organizer_or_attendee_ordered(self, db, users):
        org, a = users["org"].id, users["a"].id
        late = event_service.create_event(db, org, dict(FIELDS, title="Late", date="2024-02-01"))
        early = event_service.create_event(db, a, dict(FIELDS, title="Early", time="08:00"), attendee_ids=[org])
        event_service.create_event(db, users["b"].id, dict(FIELDS, title="Elsewhere"))

        listed = event_service.list_events_for_user(db, org)
        assert [e.id for e in listed] == [early.id, late.id]
        assert [e.attendee_count for e in listed] == [1, 0]


class TestIdentity:
    def test_duplicate_registration(self, db, users):
        from event_manager.errors import ConflictError

        with pytest.raises(ConflictError):
            identity_service.register(db, "Again", "a@example.com", "whatever")

    def test_verify_credential(self, db, users):
        from event_manager.errors import AuthenticationError

        assert identity_service.verify_credential(db, "A@example.com", "secret123").id == users["a"].id
        with pytest.raises(AuthenticationError):
            identity_service.verify_credential(db, "a@example.com", "wrong")


class TestConcurrentWriters:
    def test_second_writer_waits_and_wins_without_merge(self, db, session_factory, users, event):
        org, a, b = users["org"].id, users["a"].id, users["b"].id
        event_id = event.id
        second = {}

        def replace_with_b():
            session = session_factory()
            try:
                rows = event_service.set_attendees(session, event_id, org, [b])
                second["result"] = [row.user_id for row in rows]
            except Exception as exc:
                second["error"] = exc
            finally:
                session.close()

        writer = threading.Thread(target=replace_with_b)

        @sa_event.listens_for(db, "before_flush", once=True)
        def start_second_writer(session, flush_context, instances):
            # The first writer has read the current set but not written yet.
            writer.start()
            time.sleep(0.3)

        event_service.set_attendees(db, event_id, org, [a])
        writer.join(timeout=10)

        assert not writer.is_alive()
        assert "error" not in second
        assert second["result"] == [b]
        assert _attendee_set(db, event_id) == {b}

    def test_same_user_added_twice_concurrently(self, db, session_factory, users, event):
        org, a = users["org"].id, users["a"].id
        event_id = event.id
        second = {}

        def add_a():
            session = session_factory()
            try:
                event_service.set_attendees(session, event_id, org, [a])
            except Exception as exc:
                second["error"] = exc
            finally:
                session.close()

        writer = threading.Thread(target=add_a)

        @sa_event.listens_for(db, "before_flush", once=True)
        def start_second_writer(session, flush_context, instances):
            writer.start()
            time.sleep(0.3)

        event_service.set_attendees(db, event_id, org, [a])
        writer.join(timeout=10)

        assert "error" not in second
        assert db.query(EventAttendee).filter_by(event_id=event_id).count() == 1


class TestStoreFailure:
    def test_operational_error_becomes_internal_error(self, db, users, monkeypatch):
        def locked():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "commit", locked)
        with pytest.raises(InternalError):
            event_service.create_event(db, users["org"].id, dict(FIELDS))
        monkeypatch.undo()
        assert db.query(Event).count() == 0
