"""Event store interface.

Stores persist whole event documents and expose one atomic primitive,
``conditional_update``, that every attendance change goes through.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from evently.models.event import EventCategory


def _ensure_tzaware(value: datetime) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must be timezone-aware")
    return value


class EventDocument(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True, str_strip_whitespace=True)

    id: uuid.UUID
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=2000)
    location: str = Field(min_length=1, max_length=200)
    date: datetime
    capacity: int = Field(ge=1)
    category: EventCategory = EventCategory.OTHER
    image: str = Field(min_length=1)
    image_asset_id: str | None = None
    organizer_id: str = Field(min_length=1)
    attendees: tuple[str, ...] = ()
    attendee_count: int = Field(default=0, ge=0)
    version: int = Field(default=1, ge=1)
    created_at: datetime
    updated_at: datetime

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value):
        return EventCategory.coerce(value)

    @field_validator("date", "created_at", "updated_at", mode="after")
    @classmethod
    def _validate_tzaware(cls, value: datetime) -> datetime:
        return _ensure_tzaware(value)

    @model_validator(mode="after")
    def _validate_attendance(self):
        if len(set(self.attendees)) != len(self.attendees):
            raise ValueError("attendees must be unique")
        if self.attendee_count != len(self.attendees):
            raise ValueError("attendee_count must equal the number of attendees")
        if self.attendee_count > self.capacity:
            raise ValueError("attendee_count cannot exceed capacity")
        return self

    def is_attending(self, user_id: str) -> bool:
        return user_id in self.attendees

    @property
    def is_full(self) -> bool:
        return self.attendee_count >= self.capacity

    def with_attendee(self, user_id: str) -> EventDocument:
        return self.model_copy(
            update={
                "attendees": (*self.attendees, user_id),
                "attendee_count": self.attendee_count + 1,
            }
        )

    def without_attendee(self, user_id: str) -> EventDocument:
        remaining = tuple(a for a in self.attendees if a != user_id)
        return self.model_copy(
            update={"attendees": remaining, "attendee_count": len(remaining)}
        )


class EventSort(str, Enum):
    DATE_ASC = "date_asc"
    CREATED_DESC = "created_desc"


@dataclass(frozen=True)
class EventFilter:
    search: str | None = None
    category: EventCategory | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    organizer_id: str | None = None
    attendee_id: str | None = None
    match_nothing: bool = False


Predicate = Callable[[EventDocument], bool]
Mutation = Callable[[EventDocument], EventDocument]


class EventStore(ABC):
    """Interface for event persistence operations."""

    @abstractmethod
    def find_by_id(self, event_id: uuid.UUID) -> EventDocument | None:
        """Return the current document, or None if it does not exist."""

    @abstractmethod
    def find(
        self,
        criteria: EventFilter,
        sort: EventSort = EventSort.DATE_ASC,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[EventDocument]:
        """Return documents matching criteria in the requested order."""

    @abstractmethod
    def count(self, criteria: EventFilter) -> int:
        """Return how many documents match criteria."""

    @abstractmethod
    def create(self, document: EventDocument) -> EventDocument:
        """Insert a new document and return it as stored."""

    @abstractmethod
    def conditional_update(
        self,
        event_id: uuid.UUID,
        predicate: Predicate,
        mutation: Mutation,
    ) -> EventDocument | None:
        """Apply mutation iff predicate holds for the current stored document.

        Predicate evaluation and the write are one indivisible step: if another
        writer commits in between, the stored value is re-read and the predicate
        re-evaluated. Returns the updated document, or None when the document is
        missing or the predicate is false.
        """

    @abstractmethod
    def delete(self, event_id: uuid.UUID) -> bool:
        """Delete a document. Returns False if it did not exist."""
