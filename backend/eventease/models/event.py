"""
Event model with remaining-capacity tracking.

Key design decisions:
- `capacity` holds the REMAINING open slots, not the original size. It is
  decremented by one per registration and only the registration engine
  writes it once the event exists.
- CHECK constraint keeps capacity non-negative even if application code
  ever issued an unguarded decrement.
- Index on `date` for the upcoming-events listing.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from eventease.db.base import Base, TimestampMixin, new_id

CAPACITY_CHECK_NAME = "check_event_capacity_non_negative"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    organizer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    organizer = relationship("User", back_populates="organized_events")
    registrations = relationship("Registration", back_populates="event")

    __table_args__ = (
        CheckConstraint("capacity >= 0", name=CAPACITY_CHECK_NAME),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.capacity})>"
