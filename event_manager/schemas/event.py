"""Pydantic schemas for Events and their attendees."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from event_manager.models.attendee import AttendanceStatus


class EventCreate(BaseModel):
    # Required fields are checked by the event service so that a missing
    # and a blank value are reported the same way.
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    attendee_ids: list[str] = []


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    attendee_ids: Optional[list[str]] = None  # omitted = leave attendees untouched


class AttendeeOut(BaseModel):
    user_id: str
    name: str
    email: str
    status: AttendanceStatus

    model_config = {"from_attributes": True}


class EventOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    date: str
    time: str
    location: str
    organizer_id: str
    organizer_name: str
    organizer_email: str
    attendee_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EventDetailOut(EventOut):
    attendees: list[AttendeeOut] = []


class RSVPRequest(BaseModel):
    status: AttendanceStatus


class ReminderOut(BaseModel):
    message: str
    recipients: int
