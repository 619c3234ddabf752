from evently.services.events_service import EventLifecycleManager, ImageUpload
from evently.services.query_service import EventPage, EventQueryService
from evently.services.rsvp_service import AdmissionController

__all__ = [
    "AdmissionController",
    "EventLifecycleManager",
    "EventPage",
    "EventQueryService",
    "ImageUpload",
]
