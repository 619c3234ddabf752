from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy import delete, false, func, or_, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from evently.errors import StoreUnavailableError
from evently.models import Event, EventAttendee
from evently.models.base import utcnow
from evently.stores.base import (
    EventDocument,
    EventFilter,
    EventSort,
    EventStore,
    Mutation,
    Predicate,
)

logger = structlog.get_logger(__name__)

# Fields a mutation may change. id, organizer_id and created_at are immutable.
MUTABLE_FIELDS = (
    "title",
    "description",
    "location",
    "date",
    "capacity",
    "category",
    "image",
    "image_asset_id",
    "attendees",
    "attendee_count",
)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_document(row: Event) -> EventDocument:
    return EventDocument.model_validate(row)


def _revalidate(document: EventDocument) -> EventDocument:
    # model_copy skips validation, so run the schema again before anything is written
    return EventDocument.model_validate(document.model_dump())


class SqlEventStore(EventStore):
    """Event store backed by a relational database.

    Conditional updates are optimistic: the document is read, the predicate is
    evaluated, and the write only lands if the row's version is still the one
    that was read. A lost race re-reads and tries again.
    """

    def __init__(self, session_factory: sessionmaker[Session], max_retries: int = 100) -> None:
        self._session_factory = session_factory
        self._max_retries = max_retries

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._session_factory.begin() as db:
                yield db
        except OperationalError as exc:
            logger.error("event_store_unavailable", error=str(exc.orig))
            raise StoreUnavailableError() from exc

    def _where(self, criteria: EventFilter) -> list:
        clauses = []
        if criteria.match_nothing:
            clauses.append(false())
        if criteria.search:
            like = f"%{_escape_like(criteria.search.strip())}%"
            clauses.append(
                or_(
                    Event.title.ilike(like, escape="\\"),
                    Event.description.ilike(like, escape="\\"),
                )
            )
        if criteria.category is not None:
            clauses.append(Event.category == criteria.category)
        if criteria.date_from is not None:
            clauses.append(Event.date >= criteria.date_from)
        if criteria.date_to is not None:
            clauses.append(Event.date <= criteria.date_to)
        if criteria.organizer_id is not None:
            clauses.append(Event.organizer_id == criteria.organizer_id)
        if criteria.attendee_id is not None:
            clauses.append(
                Event.id.in_(
                    select(EventAttendee.event_id).where(
                        EventAttendee.user_id == criteria.attendee_id
                    )
                )
            )
        return clauses

    def find_by_id(self, event_id: uuid.UUID) -> EventDocument | None:
        with self._transaction() as db:
            row = db.get(Event, event_id)
            return _to_document(row) if row is not None else None

    def find(
        self,
        criteria: EventFilter,
        sort: EventSort = EventSort.DATE_ASC,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[EventDocument]:
        stmt = select(Event).where(*self._where(criteria))
        if sort == EventSort.CREATED_DESC:
            stmt = stmt.order_by(Event.created_at.desc(), Event.id)
        else:
            stmt = stmt.order_by(Event.date.asc(), Event.created_at.asc(), Event.id)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._transaction() as db:
            return [_to_document(row) for row in db.scalars(stmt).all()]

    def count(self, criteria: EventFilter) -> int:
        stmt = select(func.count()).select_from(Event).where(*self._where(criteria))
        with self._transaction() as db:
            return int(db.scalar(stmt) or 0)

    def create(self, document: EventDocument) -> EventDocument:
        document = _revalidate(document)
        row = Event(
            id=document.id,
            organizer_id=document.organizer_id,
            version=document.version,
            created_at=document.created_at,
            updated_at=document.updated_at,
            **{name: getattr(document, name) for name in MUTABLE_FIELDS},
        )
        row.attendees = list(document.attendees)
        with self._transaction() as db:
            db.add(row)
            db.add_all(
                EventAttendee(event_id=document.id, user_id=user_id)
                for user_id in document.attendees
            )
        return document

    def _compare_and_swap(
        self,
        db: Session,
        current: EventDocument,
        updated: EventDocument,
    ) -> bool:
        values = {name: getattr(updated, name) for name in MUTABLE_FIELDS}
        values["attendees"] = list(updated.attendees)
        result = db.execute(
            update(Event)
            .where(Event.id == current.id, Event.version == current.version)
            .values(**values, version=updated.version, updated_at=updated.updated_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _sync_attendee_index(
        self,
        db: Session,
        current: EventDocument,
        updated: EventDocument,
    ) -> None:
        before = set(current.attendees)
        after = set(updated.attendees)
        removed = before - after
        if removed:
            db.execute(
                delete(EventAttendee).where(
                    EventAttendee.event_id == current.id,
                    EventAttendee.user_id.in_(removed),
                )
            )
        db.add_all(
            EventAttendee(event_id=current.id, user_id=user_id)
            for user_id in updated.attendees
            if user_id not in before
        )

    def conditional_update(
        self,
        event_id: uuid.UUID,
        predicate: Predicate,
        mutation: Mutation,
    ) -> EventDocument | None:
        for attempt in range(1, self._max_retries + 1):
            with self._transaction() as db:
                row = db.get(Event, event_id)
                if row is None:
                    return None
                current = _to_document(row)
                if not predicate(current):
                    return None

                updated = _revalidate(
                    mutation(current).model_copy(
                        update={
                            "id": current.id,
                            "organizer_id": current.organizer_id,
                            "created_at": current.created_at,
                            "version": current.version + 1,
                            "updated_at": utcnow(),
                        }
                    )
                )
                if self._compare_and_swap(db, current, updated):
                    self._sync_attendee_index(db, current, updated)
                    return updated

            logger.info(
                "event_update_conflict",
                event_id=str(event_id),
                version=current.version,
                attempt=attempt,
            )

        logger.error("event_update_retries_exhausted", event_id=str(event_id))
        raise StoreUnavailableError("Too many concurrent updates, please retry")

    def delete(self, event_id: uuid.UUID) -> bool:
        with self._transaction() as db:
            db.execute(delete(EventAttendee).where(EventAttendee.event_id == event_id))
            result = db.execute(
                delete(Event)
                .where(Event.id == event_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0
