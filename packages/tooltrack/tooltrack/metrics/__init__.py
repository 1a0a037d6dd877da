"""tooltrack metrics — aggregate statistics from recorded tool events."""

from tooltrack.metrics.aggregator import MetricsAggregator, compute_tool_stats
from tooltrack.metrics.summary import SessionSummary, format_summary, summarize

__all__ = [
    "MetricsAggregator",
    "SessionSummary",
    "compute_tool_stats",
    "format_summary",
    "summarize",
]
