"""Core identifier types for tooltrack."""

from __future__ import annotations

import uuid
from typing import NewType

SessionId = NewType("SessionId", str)
EventId = NewType("EventId", str)


def generate_id() -> str:
    """Generate a unique identifier (UUID4)."""
    return str(uuid.uuid4())


def generate_session_id() -> SessionId:
    """Generate a new SessionId."""
    return SessionId(generate_id())


def generate_event_id() -> EventId:
    """Generate a new EventId."""
    return EventId(generate_id())
