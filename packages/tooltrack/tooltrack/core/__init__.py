"""tooltrack core — identifiers, errors, and foundational types."""

from tooltrack.core.errors import (
    EventNotFoundError,
    SchemaVersionError,
    SessionNotFoundError,
    SettingsError,
    ToolTrackError,
)
from tooltrack.core.identifiers import (
    EventId,
    SessionId,
    generate_event_id,
    generate_id,
    generate_session_id,
)

__all__ = [
    "EventId",
    "EventNotFoundError",
    "SchemaVersionError",
    "SessionId",
    "SessionNotFoundError",
    "SettingsError",
    "ToolTrackError",
    "generate_event_id",
    "generate_id",
    "generate_session_id",
]
