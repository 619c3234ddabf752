from evently.stores.base import EventDocument, EventFilter, EventSort, EventStore
from evently.stores.sql import SqlEventStore

__all__ = ["EventDocument", "EventFilter", "EventSort", "EventStore", "SqlEventStore"]
