import uuid

from evently.errors import NotFoundError


def parse_event_id(raw: str | uuid.UUID) -> uuid.UUID:
    """Parse a client-supplied event id; malformed ids are reported as not found."""
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw).strip())
    except ValueError:
        raise NotFoundError() from None
