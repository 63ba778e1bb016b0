"""ORM models. Importing this package registers every table with Base.metadata."""
from event_manager.models.user import User
from event_manager.models.event import Event
from event_manager.models.attendee import AttendanceStatus, EventAttendee

__all__ = ["User", "Event", "EventAttendee", "AttendanceStatus"]
