from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from evently.models.event import EventCategory

T = TypeVar("T")


def _assume_utc(value: datetime | None) -> datetime | None:
    # Browsers submit datetime-local values without an offset.
    if value is None:
        return value
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore", str_strip_whitespace=True)


class EventFieldsMixin(BaseModel):
    @field_validator("date", mode="after", check_fields=False)
    @classmethod
    def _validate_date(cls, value: datetime | None) -> datetime | None:
        return _assume_utc(value)

    @field_validator("category", mode="before", check_fields=False)
    @classmethod
    def _coerce_category(cls, value):
        if value is None or value == "":
            return None
        return EventCategory.coerce(value)


class EventCreate(EventFieldsMixin, SchemaBase):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=2000)
    location: str = Field(min_length=1, max_length=200)
    date: datetime
    capacity: int = Field(ge=1)
    category: EventCategory | None = EventCategory.OTHER

    @field_validator("category", mode="after")
    @classmethod
    def _default_category(cls, value: EventCategory | None) -> EventCategory:
        return value or EventCategory.OTHER


class EventUpdate(EventFieldsMixin, SchemaBase):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=2000)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    date: datetime | None = None
    capacity: int | None = Field(default=None, ge=1)
    category: EventCategory | None = None


class EventOut(SchemaBase):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID = Field(alias="_id")
    title: str
    description: str
    location: str
    date: datetime
    capacity: int
    category: EventCategory
    image: str
    image_asset_id: str | None = None
    organizer_id: str
    attendees: list[str]
    attendee_count: int
    created_at: datetime
    updated_at: datetime


class Pagination(SchemaBase):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    pages: int = Field(ge=0)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None
    message: str | None = None
    pagination: Pagination | None = None
