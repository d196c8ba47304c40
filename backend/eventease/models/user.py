"""
User model. Referenced, never mutated, by the registration engine.
"""

from sqlalchemy import Column, String, CheckConstraint
from sqlalchemy.orm import relationship

from eventease.db.base import Base, TimestampMixin, new_id

USER_ROLES = ("attendee", "organizer", "admin")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="attendee")

    organized_events = relationship("Event", back_populates="organizer")
    registrations = relationship("Registration", back_populates="user")

    __table_args__ = (
        CheckConstraint(
            "role IN (" + ", ".join(f"'{r}'" for r in USER_ROLES) + ")",
            name="check_user_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
