"""tooltrack tracking — per-session created-file state."""

from tooltrack.tracking.file_state import (
    FileTrackingRegistry,
    FileTrackingState,
    ResolutionPolicy,
    probe_existence,
)

__all__ = [
    "FileTrackingRegistry",
    "FileTrackingState",
    "ResolutionPolicy",
    "probe_existence",
]
