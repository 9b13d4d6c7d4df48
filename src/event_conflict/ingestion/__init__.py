from event_conflict.ingestion.json_loader import EventFileData, load_event_file
from event_conflict.ingestion.providers import (
    EventProvider,
    JsonFileProvider,
    StoreEventProvider,
    backoff_delay,
    fetch_all_events,
)

__all__ = [
    "EventFileData",
    "EventProvider",
    "JsonFileProvider",
    "StoreEventProvider",
    "backoff_delay",
    "fetch_all_events",
    "load_event_file",
]
