"""Event ORM model."""
import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from event_manager.database import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (Index("ix_events_date_time", "date", "time"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    time = Column(String(8), nullable=False)   # HH:MM
    location = Column(String(500), nullable=False)
    organizer_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    organizer = relationship("User")
    attendees = relationship(
        "EventAttendee",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventAttendee.created_at",
    )

    @property
    def organizer_name(self) -> str:
        return self.organizer.name if self.organizer else ""

    @property
    def organizer_email(self) -> str:
        return self.organizer.email if self.organizer else ""

    @property
    def attendee_count(self) -> int:
        return len(self.attendees)
