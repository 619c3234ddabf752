from evently.models.base import Base
from evently.models.event import Event, EventCategory
from evently.models.event_attendee import EventAttendee

__all__ = ["Base", "Event", "EventAttendee", "EventCategory"]
