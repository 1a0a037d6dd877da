"""tooltrack session — the dispatch-loop and reporting facade."""

from tooltrack.session.tracker import SessionState, ToolTracker

__all__ = [
    "SessionState",
    "ToolTracker",
]
