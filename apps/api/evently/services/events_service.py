from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from evently.api.v1.schemas.events import EventCreate, EventUpdate
from evently.errors import NotFoundError, PermissionDeniedError, ValidationError
from evently.models.base import utcnow
from evently.storage.base import AssetStore, StoredAsset
from evently.stores.base import EventDocument, EventStore

logger = structlog.get_logger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class ImageUpload:
    content: bytes
    content_type: str | None = None
    filename: str | None = None


def _require_organizer(user_id: str, event: EventDocument, action: str) -> None:
    if event.organizer_id != user_id:
        raise PermissionDeniedError(f"Not authorized to {action} this event")


class EventLifecycleManager:
    def __init__(
        self,
        store: EventStore,
        assets: AssetStore,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ) -> None:
        self._store = store
        self._assets = assets
        self._max_image_bytes = max_image_bytes

    @property
    def max_image_bytes(self) -> int:
        return self._max_image_bytes

    def _validate_image(self, image: ImageUpload) -> None:
        if not image.content:
            raise ValidationError("uploaded image is empty")
        if len(image.content) > self._max_image_bytes:
            raise ValidationError(
                f"File size too large. Maximum size is {self._max_image_bytes // (1024 * 1024)}MB"
            )
        content_type = (image.content_type or "").lower()
        if not content_type.startswith("image/"):
            raise ValidationError("only image uploads are allowed")

    def _discard_asset(self, asset_id: str | None) -> None:
        """Best-effort asset removal. A leaked asset is logged, never raised."""
        if not asset_id:
            return
        try:
            deleted = self._assets.delete(asset_id)
        except Exception:
            logger.exception("asset_delete_failed", asset_id=asset_id)
            return
        if not deleted:
            logger.warning("asset_delete_failed", asset_id=asset_id)

    def _get_or_404(self, event_id: uuid.UUID) -> EventDocument:
        event = self._store.find_by_id(event_id)
        if event is None:
            raise NotFoundError()
        return event

    def create_event(
        self,
        organizer_id: str,
        payload: EventCreate,
        image: ImageUpload | None,
        now: datetime | None = None,
    ) -> EventDocument:
        if image is None:
            raise ValidationError("Please upload an image")
        self._validate_image(image)

        now = now or datetime.now(timezone.utc)
        if payload.date <= now:
            raise ValidationError("event date must be in the future")

        asset: StoredAsset = self._assets.store(image.content, image.content_type)

        created_at = utcnow()
        document = EventDocument(
            id=uuid.uuid4(),
            title=payload.title,
            description=payload.description,
            location=payload.location,
            date=payload.date,
            capacity=payload.capacity,
            category=payload.category,
            image=asset.url,
            image_asset_id=asset.asset_id,
            organizer_id=organizer_id,
            attendees=(),
            attendee_count=0,
            version=1,
            created_at=created_at,
            updated_at=created_at,
        )
        try:
            event = self._store.create(document)
        except Exception:
            self._discard_asset(asset.asset_id)
            raise

        logger.info("event_created", event_id=str(event.id), organizer_id=organizer_id)
        return event

    def update_event(
        self,
        user_id: str,
        event_id: uuid.UUID,
        patch: EventUpdate,
        image: ImageUpload | None = None,
    ) -> EventDocument:
        current = self._get_or_404(event_id)
        _require_organizer(user_id, current, "update")

        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        new_capacity = changes.get("capacity")

        new_asset: StoredAsset | None = None
        if image is not None:
            self._validate_image(image)
            new_asset = self._assets.store(image.content, image.content_type)
            changes["image"] = new_asset.url
            changes["image_asset_id"] = new_asset.asset_id

        # Capacity is checked against the stored attendee count at write time.
        def fits_attendees(event: EventDocument) -> bool:
            return new_capacity is None or new_capacity >= event.attendee_count

        replaced: dict[str, str | None] = {}

        def apply_changes(event: EventDocument) -> EventDocument:
            replaced["asset_id"] = event.image_asset_id
            return event.model_copy(update=changes)

        try:
            updated = self._store.conditional_update(event_id, fits_attendees, apply_changes)
        except Exception:
            if new_asset is not None:
                self._discard_asset(new_asset.asset_id)
            raise

        if updated is None:
            if new_asset is not None:
                self._discard_asset(new_asset.asset_id)
            latest = self._get_or_404(event_id)
            raise ValidationError(
                f"Cannot reduce capacity below current attendee count ({latest.attendee_count})"
            )

        if new_asset is not None:
            self._discard_asset(replaced.get("asset_id"))

        logger.info(
            "event_updated",
            event_id=str(event_id),
            fields=sorted(changes),
            version=updated.version,
        )
        return updated

    def delete_event(self, user_id: str, event_id: uuid.UUID) -> None:
        current = self._get_or_404(event_id)
        _require_organizer(user_id, current, "delete")

        self._discard_asset(current.image_asset_id)

        if not self._store.delete(event_id):
            raise NotFoundError()
        logger.info("event_deleted", event_id=str(event_id), organizer_id=user_id)
