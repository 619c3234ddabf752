from datetime import datetime
from enum import Enum
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from evently.models.base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class EventCategory(str, Enum):
    CONFERENCE = "conference"
    WORKSHOP = "workshop"
    MEETUP = "meetup"
    SEMINAR = "seminar"
    WEBINAR = "webinar"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "EventCategory":
        """Map any input onto a known category, falling back to OTHER."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.OTHER
        return cls.OTHER


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        sa.CheckConstraint("capacity >= 1", name="ck_events_capacity_positive"),
        sa.CheckConstraint(
            "attendee_count >= 0 AND attendee_count <= capacity",
            name="ck_events_attendee_count_range",
        ),
        sa.Index("ix_events_date", "date"),
        sa.Index("ix_events_category", "category"),
        sa.Index("ix_events_organizer_id", "organizer_id"),
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[EventCategory] = mapped_column(
        sa.Enum(
            EventCategory,
            name="event_category",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=EventCategory.OTHER,
    )

    image: Mapped[str] = mapped_column(String(1024), nullable=False)
    image_asset_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    organizer_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Source of truth for membership; event_attendees mirrors it for lookups by user.
    attendees: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    attendee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Bumped by every committed write; conditional updates compare-and-swap on it.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
