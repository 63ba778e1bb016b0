"""Immutable event data handed to the notification dispatcher."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel


class EventSnapshot(BaseModel):
    """Committed state of an event at the moment a dispatch was scheduled."""

    event_id: str
    title: str
    description: Optional[str] = None
    date: str
    time: str
    location: str
    organizer_name: str
    organizer_email: str

    model_config = {"from_attributes": True, "frozen": True}

    @classmethod
    def from_event(cls, event) -> "EventSnapshot":
        return cls(
            event_id=event.id,
            title=event.title,
            description=event.description,
            date=event.date,
            time=event.time,
            location=event.location,
            organizer_name=event.organizer_name,
            organizer_email=event.organizer_email,
        )
