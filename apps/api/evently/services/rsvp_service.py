"""Admission control for event attendance.

Join and Leave are each a single conditional update against the event store.
The store evaluates the precondition against the document it is about to
overwrite, so two requests racing for the last seat can never both win. When
the update does not apply, a second read is made only to explain why.
"""

from __future__ import annotations

import uuid

import structlog

from evently.errors import (
    AlreadyJoinedError,
    CapacityExceededError,
    NotAttendingError,
    NotFoundError,
    ServiceError,
)
from evently.stores.base import EventDocument, EventStore

logger = structlog.get_logger(__name__)


def _can_join(user_id: str):
    def predicate(event: EventDocument) -> bool:
        return not event.is_attending(user_id) and not event.is_full

    return predicate


def _is_attendee(user_id: str):
    def predicate(event: EventDocument) -> bool:
        return event.is_attending(user_id)

    return predicate


class AdmissionController:
    def __init__(self, store: EventStore) -> None:
        self._store = store

    def join(self, event_id: uuid.UUID, user_id: str) -> EventDocument:
        updated = self._store.conditional_update(
            event_id,
            _can_join(user_id),
            lambda event: event.with_attendee(user_id),
        )
        if updated is not None:
            logger.info(
                "rsvp_joined",
                event_id=str(event_id),
                user_id=user_id,
                attendee_count=updated.attendee_count,
                capacity=updated.capacity,
            )
            return updated

        error = self._join_rejection(event_id, user_id)
        logger.info("rsvp_join_rejected", event_id=str(event_id), user_id=user_id, code=error.code.value)
        raise error

    def leave(self, event_id: uuid.UUID, user_id: str) -> EventDocument:
        updated = self._store.conditional_update(
            event_id,
            _is_attendee(user_id),
            lambda event: event.without_attendee(user_id),
        )
        if updated is not None:
            logger.info(
                "rsvp_cancelled",
                event_id=str(event_id),
                user_id=user_id,
                attendee_count=updated.attendee_count,
            )
            return updated

        error = self._leave_rejection(event_id)
        logger.info("rsvp_leave_rejected", event_id=str(event_id), user_id=user_id, code=error.code.value)
        raise error

    def _join_rejection(self, event_id: uuid.UUID, user_id: str) -> ServiceError:
        # Diagnostic read only: the decision not to mutate has already been made.
        event = self._store.find_by_id(event_id)
        if event is None:
            return NotFoundError()
        if event.is_attending(user_id):
            return AlreadyJoinedError()
        return CapacityExceededError()

    def _leave_rejection(self, event_id: uuid.UUID) -> ServiceError:
        if self._store.find_by_id(event_id) is None:
            return NotFoundError()
        return NotAttendingError()
