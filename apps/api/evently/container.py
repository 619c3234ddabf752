from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from evently.core.config import Settings
from evently.db import create_db_engine, create_session_factory, init_db
from evently.services.events_service import EventLifecycleManager
from evently.services.query_service import EventQueryService
from evently.services.rsvp_service import AdmissionController
from evently.storage.base import AssetStore
from evently.storage.factory import create_asset_store
from evently.stores.base import EventStore
from evently.stores.sql import SqlEventStore


@dataclass
class Container:
    """Process-wide handles, built once at startup and shared by every request."""

    settings: Settings
    engine: Engine
    store: EventStore
    assets: AssetStore
    admission: AdmissionController
    queries: EventQueryService
    lifecycle: EventLifecycleManager

    def close(self) -> None:
        self.engine.dispose()


def build_container(config: Settings, create_schema: bool = False) -> Container:
    engine = create_db_engine(config.database_url)
    if create_schema:
        init_db(engine)

    store = SqlEventStore(
        create_session_factory(engine),
        max_retries=config.store_max_retries,
    )
    assets = create_asset_store(config)

    return Container(
        settings=config,
        engine=engine,
        store=store,
        assets=assets,
        admission=AdmissionController(store),
        queries=EventQueryService(store),
        lifecycle=EventLifecycleManager(
            store,
            assets,
            max_image_bytes=config.image_max_upload_bytes,
        ),
    )
