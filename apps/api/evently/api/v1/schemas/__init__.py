from evently.api.v1.schemas.events import (
    Envelope,
    EventCreate,
    EventOut,
    EventUpdate,
    Pagination,
)

__all__ = [
    "Envelope",
    "EventCreate",
    "EventUpdate",
    "EventOut",
    "Pagination",
]
