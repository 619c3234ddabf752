from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone

from evently.errors import NotFoundError, ValidationError
from evently.models.event import EventCategory
from evently.stores.base import EventDocument, EventFilter, EventSort, EventStore

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class EventPage:
    items: list[EventDocument]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit)


def _parse_category(raw: str | None) -> tuple[EventCategory | None, bool]:
    """Return ``(category, matches_nothing)`` for a category query value.

    ``all`` or a blank value is no filter. A name that is not a known category
    is still an exact filter, so it selects no events.
    """
    if raw is None:
        return None, False
    value = raw.strip().lower()
    if not value or value == "all":
        return None, False
    try:
        return EventCategory(value), False
    except ValueError:
        return None, True


def parse_date_bound(raw: str | None, field: str, *, end_of_day: bool = False) -> datetime | None:
    """Parse an ISO date or datetime query bound.

    A bare date covers the whole day: start bounds begin at midnight UTC and end
    bounds run to the last microsecond of that day.
    """
    if raw is None or not raw.strip():
        return None
    value = raw.strip()
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"invalid {field}: {raw}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class EventQueryService:
    def __init__(self, store: EventStore) -> None:
        self._store = store

    def list_events(
        self,
        search: str | None = None,
        category: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        now: datetime | None = None,
    ) -> EventPage:
        if page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        date_from = parse_date_bound(start_date, "startDate")
        date_to = parse_date_bound(end_date, "endDate", end_of_day=True)
        if date_from is None and date_to is None:
            # upcoming events only
            date_from = now or datetime.now(timezone.utc)

        category_filter, unknown_category = _parse_category(category)
        criteria = EventFilter(
            search=search.strip() if search and search.strip() else None,
            category=category_filter,
            match_nothing=unknown_category,
            date_from=date_from,
            date_to=date_to,
        )
        items = self._store.find(
            criteria,
            sort=EventSort.DATE_ASC,
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = self._store.count(criteria)
        return EventPage(items=items, page=page, limit=limit, total=total)

    def get_event(self, event_id: uuid.UUID) -> EventDocument:
        event = self._store.find_by_id(event_id)
        if event is None:
            raise NotFoundError()
        return event

    def events_by_organizer(self, user_id: str) -> list[EventDocument]:
        return self._store.find(EventFilter(organizer_id=user_id), sort=EventSort.CREATED_DESC)

    def events_by_attendee(self, user_id: str) -> list[EventDocument]:
        return self._store.find(EventFilter(attendee_id=user_id), sort=EventSort.DATE_ASC)
