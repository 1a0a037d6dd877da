"""tooltrack — tool-invocation classification and metrics for coding agents.

Observes file-affecting tool calls, decides whether each one created or
modified a file, persists the result to an append-only event store, and
aggregates it into per-session tool statistics.
"""

__version__ = "0.1.0"

from tooltrack.core.identifiers import EventId, SessionId
from tooltrack.metrics.aggregator import MetricsAggregator
from tooltrack.runtime.event_store import SQLiteToolEventStore
from tooltrack.runtime.recorder import EventRecorder
from tooltrack.schemas.operations import CallStatus, OperationType
from tooltrack.schemas.stats import ToolStats
from tooltrack.schemas.tool_event import ToolEvent
from tooltrack.session.tracker import ToolTracker
from tooltrack.settings import SettingsManager, TrackerSettings
from tooltrack.tools.classifier import Classification, ToolCategory, classify

__all__ = [
    "CallStatus",
    "Classification",
    "EventId",
    "EventRecorder",
    "MetricsAggregator",
    "OperationType",
    "SQLiteToolEventStore",
    "SessionId",
    "SettingsManager",
    "ToolCategory",
    "ToolEvent",
    "ToolStats",
    "ToolTracker",
    "TrackerSettings",
    "classify",
]
