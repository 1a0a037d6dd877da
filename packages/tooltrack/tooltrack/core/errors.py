"""Core error hierarchy for tooltrack."""

from __future__ import annotations


class ToolTrackError(Exception):
    """Base exception for all tooltrack errors."""


class SchemaVersionError(ToolTrackError):
    """Raised when the event database was written by a newer schema than this code knows."""


class EventNotFoundError(ToolTrackError):
    """Raised when a tool event lookup finds no matching record."""


class SessionNotFoundError(ToolTrackError):
    """Raised when a session has no recorded tool events or is not open."""


class SettingsError(ToolTrackError):
    """Raised when tracker settings hold an invalid policy value."""
