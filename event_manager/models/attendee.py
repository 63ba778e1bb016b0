"""EventAttendee ORM model: one row per (event, user) membership."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from event_manager.database import Base


class AttendanceStatus(str, enum.Enum):
    invited = "invited"
    accepted = "accepted"
    declined = "declined"
    maybe = "maybe"


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    # The composite primary key is the (event_id, user_id) uniqueness rule.
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    status = Column(SAEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.invited)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    event = relationship("Event", back_populates="attendees")
    user = relationship("User")

    @property
    def name(self) -> str:
        return self.user.name

    @property
    def email(self) -> str:
        return self.user.email
