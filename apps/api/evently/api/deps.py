from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from evently.container import Container
from evently.core.config import Settings
from evently.services.events_service import EventLifecycleManager
from evently.services.query_service import EventQueryService
from evently.services.rsvp_service import AdmissionController


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_settings(request: Request) -> Settings:
    return get_container(request).settings


def get_admission(request: Request) -> AdmissionController:
    return get_container(request).admission


def get_queries(request: Request) -> EventQueryService:
    return get_container(request).queries


def get_lifecycle(request: Request) -> EventLifecycleManager:
    return get_container(request).lifecycle


Admission = Annotated[AdmissionController, Depends(get_admission)]
Queries = Annotated[EventQueryService, Depends(get_queries)]
Lifecycle = Annotated[EventLifecycleManager, Depends(get_lifecycle)]
