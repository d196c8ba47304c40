from eventease.models.user import User
from eventease.models.event import Event
from eventease.models.registration import Registration

__all__ = ["User", "Event", "Registration"]
