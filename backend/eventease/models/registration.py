"""
Registration model: the join row recording that a user holds a slot in an event.

Key design decisions:
- Unique constraint on (user_id, event_id) is the authoritative duplicate
  guard; the engine's pre-check only produces a friendlier error first.
- Rows are never updated. Unregistering deletes the row.
- Composite index (user_id, created_at) serves the "my registrations" page.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from eventease.db.base import Base, new_id, utcnow

UNIQUE_USER_EVENT_NAME = "uq_registration_user_event"


class Registration(Base):
    __tablename__ = "registrations"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="registrations")
    event = relationship("Event", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name=UNIQUE_USER_EVENT_NAME),
        Index("ix_registrations_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Registration(id={self.id}, user={self.user_id}, event={self.event_id})>"
