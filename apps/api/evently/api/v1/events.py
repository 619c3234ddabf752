from __future__ import annotations

from typing import TypeVar

from fastapi import APIRouter, File, Form, Query, UploadFile
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from evently.api.deps import Admission, Lifecycle, Queries
from evently.api.v1.schemas.events import (
    Envelope,
    EventCreate,
    EventOut,
    EventUpdate,
    Pagination,
)
from evently.auth.deps import CurrentUserId
from evently.errors import ValidationError
from evently.services.events_service import ImageUpload
from evently.services.ids import parse_event_id
from evently.services.query_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from evently.stores.base import EventDocument

router = APIRouter(prefix="/events", tags=["events"])

M = TypeVar("M", bound=BaseModel)

EventEnvelope = Envelope[EventOut]
EventListEnvelope = Envelope[list[EventOut]]


def _out(event: EventDocument) -> EventOut:
    return EventOut.model_validate(event)


def _parse_form(model: type[M], fields: dict[str, str | None], *, skip_blank: bool) -> M:
    data = {
        key: value
        for key, value in fields.items()
        if value is not None and not (skip_blank and not value.strip())
    }
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid input")
        raise ValidationError(f"{location}: {message}" if location else message) from None


def _read_image(upload: UploadFile | None, max_bytes: int) -> ImageUpload | None:
    if upload is None:
        return None
    try:
        # One byte past the limit is enough to reject oversized files.
        content = upload.file.read(max_bytes + 1)
    finally:
        upload.file.close()
    if not content and not upload.filename:
        return None
    return ImageUpload(content=content, content_type=upload.content_type, filename=upload.filename)


@router.get("", response_model=EventListEnvelope, response_model_exclude_none=True)
def list_events(
    queries: Queries,
    search: str | None = Query(default=None),
    category: str | None = Query(default=None),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    result = queries.list_events(
        search=search,
        category=category,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return EventListEnvelope(
        data=[_out(event) for event in result.items],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            pages=result.pages,
        ),
    )


@router.get("/user/my-events", response_model=EventListEnvelope, response_model_exclude_none=True)
def my_events(user_id: CurrentUserId, queries: Queries):
    return EventListEnvelope(data=[_out(event) for event in queries.events_by_organizer(user_id)])


@router.get("/user/my-rsvps", response_model=EventListEnvelope, response_model_exclude_none=True)
def my_rsvps(user_id: CurrentUserId, queries: Queries):
    return EventListEnvelope(data=[_out(event) for event in queries.events_by_attendee(user_id)])


@router.get("/{event_id}", response_model=EventEnvelope, response_model_exclude_none=True)
def get_event(event_id: str, queries: Queries):
    return EventEnvelope(data=_out(queries.get_event(parse_event_id(event_id))))


@router.post("", status_code=201, response_model=EventEnvelope, response_model_exclude_none=True)
def create_event(
    user_id: CurrentUserId,
    lifecycle: Lifecycle,
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    date: str | None = Form(default=None),
    location: str | None = Form(default=None),
    capacity: str | None = Form(default=None),
    category: str | None = Form(default=None),
    image: UploadFile | None = File(default=None),
):
    upload = _read_image(image, lifecycle.max_image_bytes)
    if upload is None:
        raise ValidationError("Please upload an image")

    payload = _parse_form(
        EventCreate,
        {
            "title": title,
            "description": description,
            "date": date,
            "location": location,
            "capacity": capacity,
            "category": category,
        },
        skip_blank=False,
    )
    event = lifecycle.create_event(user_id, payload, upload)
    return EventEnvelope(data=_out(event))


@router.put("/{event_id}", response_model=EventEnvelope, response_model_exclude_none=True)
def update_event(
    event_id: str,
    user_id: CurrentUserId,
    lifecycle: Lifecycle,
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    date: str | None = Form(default=None),
    location: str | None = Form(default=None),
    capacity: str | None = Form(default=None),
    category: str | None = Form(default=None),
    image: UploadFile | None = File(default=None),
):
    patch = _parse_form(
        EventUpdate,
        {
            "title": title,
            "description": description,
            "date": date,
            "location": location,
            "capacity": capacity,
            "category": category,
        },
        skip_blank=True,
    )
    upload = _read_image(image, lifecycle.max_image_bytes)
    event = lifecycle.update_event(user_id, parse_event_id(event_id), patch, upload)
    return EventEnvelope(data=_out(event))


@router.delete("/{event_id}", response_model=EventEnvelope, response_model_exclude_none=True)
def delete_event(event_id: str, user_id: CurrentUserId, lifecycle: Lifecycle):
    lifecycle.delete_event(user_id, parse_event_id(event_id))
    return EventEnvelope(message="Event deleted successfully")


@router.post("/{event_id}/rsvp", response_model=EventEnvelope, response_model_exclude_none=True)
def join_event(event_id: str, user_id: CurrentUserId, admission: Admission):
    event = admission.join(parse_event_id(event_id), user_id)
    return EventEnvelope(data=_out(event), message="Successfully RSVPed to event")


@router.delete("/{event_id}/rsvp", response_model=EventEnvelope, response_model_exclude_none=True)
def leave_event(event_id: str, user_id: CurrentUserId, admission: Admission):
    event = admission.leave(parse_event_id(event_id), user_id)
    return EventEnvelope(data=_out(event), message="Successfully cancelled RSVP")
