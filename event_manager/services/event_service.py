"""Event store: events and their attendee membership.

Responsibilities:
- Required-field validation on create and update
- Authorization hook: only the organizer may update, delete or change attendees
- Attendee set replacement as one transaction (set semantics, unknown ids rejected)
- Row lock on the event while its attendee set is rewritten, so concurrent
  writers to the same event are serialized
- Delete cascades to attendee rows in the same transaction
"""
import logging
from typing import Any, Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from event_manager.database import atomic
from event_manager.errors import AuthorizationError, NotFoundError, ValidationError
from event_manager.models.attendee import AttendanceStatus, EventAttendee
from event_manager.models.event import Event
from event_manager.models.user import User

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "date", "time", "location")
EDITABLE_FIELDS = ("title", "description", "date", "time", "location")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_required(fields: dict[str, Any]) -> None:
    if any(_is_blank(fields.get(name)) for name in REQUIRED_FIELDS):
        raise ValidationError("Title, date, time, and location are required")


def _check_authorization(event: Event, caller_id: str) -> None:
    """Only the organizer may mutate an event or its attendees."""
    if event.organizer_id != caller_id:
        raise AuthorizationError("Only the organizer may modify this event")


def _lock_event_row(db: Session, event_id: str) -> None:
    """Take SQLite's write lock before the event and its attendees are read.

    SQLite has no ``SELECT ... FOR UPDATE`` and pysqlite only opens a
    transaction on the first write, so a no-op UPDATE goes first. A second
    writer then waits in its own no-op UPDATE until this transaction ends.
    """
    db.connection().exec_driver_sql("UPDATE events SET id = id WHERE id = ?", (event_id,))


def _load_event(db: Session, event_id: str, for_update: bool = False) -> Event:
    if for_update and db.get_bind().dialect.name == "sqlite":
        _lock_event_row(db, event_id)
    query = db.query(Event).filter(Event.id == event_id)
    if for_update:
        query = query.with_for_update()
    event = query.first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def _resolve_user_ids(db: Session, user_ids: Iterable[str]) -> list[str]:
    """Deduplicate ``user_ids`` (keeping order) and make sure each one exists."""
    wanted = list(dict.fromkeys(str(uid) for uid in user_ids))
    if not wanted:
        return []
    found = {row[0] for row in db.query(User.id).filter(User.id.in_(wanted)).all()}
    missing = [uid for uid in wanted if uid not in found]
    if missing:
        raise NotFoundError(f"Unknown attendee id(s): {', '.join(missing)}")
    return wanted


def _replace_attendees(db: Session, event: Event, user_ids: Iterable[str]) -> list[str]:
    """Make the event's attendee set exactly ``user_ids``; returns the added ids.

    Runs inside the caller's transaction. Attendees kept across the
    replacement keep their RSVP status.
    """
    wanted = _resolve_user_ids(db, user_ids)
    wanted_set = set(wanted)
    current = {attendee.user_id: attendee for attendee in event.attendees}

    for user_id, attendee in current.items():
        if user_id not in wanted_set:
            event.attendees.remove(attendee)

    added = [uid for uid in wanted if uid not in current]
    for user_id in added:
        event.attendees.append(EventAttendee(user_id=user_id, status=AttendanceStatus.invited))

    db.flush()
    removed = len(current) - (len(wanted) - len(added))
    logger.info(
        "Attendees of event %s replaced: %d total, %d added, %d removed",
        event.id, len(wanted), len(added), removed,
    )
    return added


def create_event(
    db: Session,
    organizer_id: str,
    fields: dict[str, Any],
    attendee_ids: Optional[Iterable[str]] = None,
) -> Event:
    """Persist a new event owned by ``organizer_id``, with its initial attendees."""
    _check_required(fields)
    if db.get(User, organizer_id) is None:
        raise NotFoundError("User not found")

    with atomic(db):
        event = Event(
            organizer_id=organizer_id,
            **{name: fields.get(name) for name in EDITABLE_FIELDS},
        )
        db.add(event)
        db.flush()
        if attendee_ids:
            _replace_attendees(db, event, attendee_ids)

    db.refresh(event)
    logger.info("Created event '%s' (%s) by organizer %s", event.title, event.id, organizer_id)
    return event


def set_attendees(
    db: Session, event_id: str, caller_id: str, user_ids: Iterable[str]
) -> list[EventAttendee]:
    """Replace the whole attendee set of an event (organizer only)."""
    with atomic(db):
        event = _load_event(db, event_id, for_update=True)
        _check_authorization(event, caller_id)
        _replace_attendees(db, event, user_ids)

    db.refresh(event)
    return list(event.attendees)


def get_event_with_attendees(db: Session, event_id: str) -> Event:
    event = (
        db.query(Event)
        .options(
            selectinload(Event.organizer),
            selectinload(Event.attendees).selectinload(EventAttendee.user),
        )
        .filter(Event.id == event_id)
        .first()
    )
    if not event:
        raise NotFoundError("Event not found")
    return event


def list_events_for_user(db: Session, user_id: str) -> list[Event]:
    """Events the user organizes or attends, soonest first."""
    attending = select(EventAttendee.event_id).where(EventAttendee.user_id == user_id)
    return (
        db.query(Event)
        .options(selectinload(Event.organizer), selectinload(Event.attendees))
        .filter(or_(Event.organizer_id == user_id, Event.id.in_(attending)))
        .order_by(Event.date, Event.time, Event.created_at)
        .all()
    )


def update_event(
    db: Session,
    event_id: str,
    caller_id: str,
    fields: dict[str, Any],
    attendee_ids: Optional[Iterable[str]] = None,
) -> tuple[Event, list[str]]:
    """Partial update of an event (organizer only).

    The attendee set is only touched when ``attendee_ids`` is given; an empty
    list clears it. Returns the event and the ids of newly added attendees.
    """
    updates = {name: value for name, value in fields.items() if name in EDITABLE_FIELDS}

    added: list[str] = []
    with atomic(db):
        event = _load_event(db, event_id, for_update=True)
        _check_authorization(event, caller_id)
        for name in REQUIRED_FIELDS:
            if name in updates and _is_blank(updates[name]):
                raise ValidationError(f"{name.capitalize()} must not be empty")
        for name, value in updates.items():
            setattr(event, name, value)
        if attendee_ids is not None:
            added = _replace_attendees(db, event, attendee_ids)

    db.refresh(event)
    logger.info("Updated event %s (%s)", event_id, ", ".join(sorted(updates)) or "attendees only")
    return event, added


def delete_event(db: Session, event_id: str, caller_id: str) -> None:
    """Delete an event and its attendee rows together (organizer only)."""
    with atomic(db):
        event = _load_event(db, event_id, for_update=True)
        _check_authorization(event, caller_id)
        attendee_count = len(event.attendees)
        db.delete(event)
    logger.info("Deleted event %s and %d attendee row(s)", event_id, attendee_count)


def list_attendees(db: Session, event_id: str) -> list[EventAttendee]:
    """Attendee rows for an event; empty (not an error) once it is gone."""
    return db.query(EventAttendee).filter(EventAttendee.event_id == event_id).all()


def set_rsvp(db: Session, event_id: str, user_id: str, status: AttendanceStatus) -> EventAttendee:
    """An attendee answers an invitation. Membership itself is unchanged."""
    with atomic(db):
        _load_event(db, event_id)
        attendee = (
            db.query(EventAttendee)
            .filter(EventAttendee.event_id == event_id, EventAttendee.user_id == user_id)
            .first()
        )
        if not attendee:
            raise NotFoundError("User is not an attendee of this event")
        attendee.status = AttendanceStatus(status)

    db.refresh(attendee)
    logger.info("User %s RSVP'd '%s' to event %s", user_id, attendee.status.value, event_id)
    return attendee


def reminder_recipients(db: Session, event_id: str, caller_id: str) -> tuple[Event, list[str]]:
    """Event and current attendee ids for an organizer-triggered reminder."""
    event = get_event_with_attendees(db, event_id)
    _check_authorization(event, caller_id)
    return event, [attendee.user_id for attendee in event.attendees]
