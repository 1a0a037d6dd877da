"""tooltrack runtime — durable tool event store and the recorder around it."""

from tooltrack.runtime.event_store import (
    CURRENT_SCHEMA_VERSION,
    SQLiteToolEventStore,
    ToolEventStore,
)
from tooltrack.runtime.recorder import EventRecorder, merge_events

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "EventRecorder",
    "SQLiteToolEventStore",
    "ToolEventStore",
    "merge_events",
]
