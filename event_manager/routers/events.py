"""Event API routes. Consistency rules live in event_service.

Invitation and reminder emails are queued as background tasks: they run after
the response has been sent and their outcome never changes it.
"""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from event_manager.database import get_db
from event_manager.deps import get_current_user_id, get_dispatcher
from event_manager.notifications.dispatcher import NotificationDispatcher, NotificationKind
from event_manager.schemas.event import (
    AttendeeOut,
    EventCreate,
    EventDetailOut,
    EventOut,
    EventUpdate,
    ReminderOut,
    RSVPRequest,
)
from event_manager.schemas.notification import EventSnapshot
from event_manager.services import event_service

logger = logging.getLogger(__name__)
router = APIRouter()


def _schedule(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    event,
    recipient_ids: list[str],
    kind: NotificationKind = NotificationKind.invitation,
) -> None:
    if not recipient_ids:
        return
    snapshot = EventSnapshot.from_event(event)
    background_tasks.add_task(dispatcher.dispatch, snapshot, list(recipient_ids), kind)
    logger.info("Queued %d %s email(s) for event %s", len(recipient_ids), kind.value, event.id)


@router.get("", response_model=list[EventOut])
def list_events(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Events the caller organizes or attends, ordered by date and time."""
    return event_service.list_events_for_user(db, user_id)


@router.get("/{event_id}", response_model=EventDetailOut)
def get_event(event_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Fetch a single event with its attendees."""
    return event_service.get_event_with_attendees(db, event_id)


@router.post("", response_model=EventDetailOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Create an event owned by the caller and invite its attendees."""
    event = event_service.create_event(
        db,
        organizer_id=user_id,
        fields=payload.model_dump(exclude={"attendee_ids"}),
        attendee_ids=payload.attendee_ids,
    )
    _schedule(background_tasks, dispatcher, event, [a.user_id for a in event.attendees])
    return event


@router.put("/{event_id}", response_model=EventDetailOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Update an event (organizer only). Only newly added attendees are emailed."""
    fields = payload.model_dump(exclude_unset=True, exclude={"attendee_ids"})
    event, added = event_service.update_event(
        db,
        event_id=event_id,
        caller_id=user_id,
        fields=fields,
        attendee_ids=payload.attendee_ids,
    )
    _schedule(background_tasks, dispatcher, event, added)
    return event


@router.delete("/{event_id}")
def delete_event(event_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Delete an event and its attendee list (organizer only)."""
    event_service.delete_event(db, event_id=event_id, caller_id=user_id)
    return {"message": "Event deleted successfully"}


@router.post("/{event_id}/rsvp", response_model=AttendeeOut)
def rsvp(
    event_id: str,
    payload: RSVPRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Set the caller's own attendance status."""
    return event_service.set_rsvp(db, event_id=event_id, user_id=user_id, status=payload.status)


@router.post("/{event_id}/remind", response_model=ReminderOut, status_code=status.HTTP_202_ACCEPTED)
def remind_attendees(
    event_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Email a reminder to every current attendee (organizer only)."""
    event, recipients = event_service.reminder_recipients(db, event_id=event_id, caller_id=user_id)
    _schedule(background_tasks, dispatcher, event, recipients, NotificationKind.reminder)
    return {"message": "Reminders queued", "recipients": len(recipients)}
