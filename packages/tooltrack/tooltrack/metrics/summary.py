"""Session summary — report-level figures derived from ToolStats."""

from __future__ import annotations

from pydantic import BaseModel, Field

from tooltrack.schemas.operations import OperationType
from tooltrack.schemas.stats import ToolStats


class SessionSummary(BaseModel):
    """Behavioural summary of one session's tool usage."""

    session_id: str
    tool_uses: int = 0
    files_created: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    files_read: int = 0
    commands_executed: int = 0
    searches: int = 0
    failed_calls: int = 0
    success_rate: float = Field(ge=0.0, le=100.0, default=100.0)
    error_rate: float = Field(ge=0.0, le=100.0, default=0.0)
    avg_duration_ms: float = Field(ge=0.0, default=0.0)
    heuristic_fraction: float = Field(ge=0.0, le=1.0, default=0.0)
    operation_percentages: dict[OperationType, float] = Field(default_factory=dict)

    @property
    def used_fallback(self) -> bool:
        """True when some operation counts came from the name heuristic."""
        return self.heuristic_fraction > 0.0


def summarize(stats: ToolStats) -> SessionSummary:
    """Derive a SessionSummary from aggregated ToolStats."""
    total = stats.total_calls
    finished = stats.successful_calls + stats.failed_calls
    if finished:
        success_rate = stats.successful_calls / finished * 100.0
        error_rate = stats.failed_calls / finished * 100.0
    else:
        success_rate, error_rate = 100.0, 0.0

    percentages = {
        operation: count / total * 100.0
        for operation, count in stats.calls_by_operation.items()
    } if total else {}

    return SessionSummary(
        session_id=stats.session_id,
        tool_uses=total,
        files_created=stats.count(OperationType.CREATE),
        files_modified=stats.count(OperationType.MODIFY),
        files_deleted=stats.count(OperationType.DELETE),
        files_read=stats.count(OperationType.READ),
        commands_executed=stats.count(OperationType.EXECUTE),
        searches=stats.count(OperationType.SEARCH),
        failed_calls=stats.failed_calls,
        success_rate=success_rate,
        error_rate=error_rate,
        avg_duration_ms=stats.avg_duration_ms,
        heuristic_fraction=stats.heuristic_fraction,
        operation_percentages=percentages,
    )


def format_summary(summary: SessionSummary, *, detailed: bool = False) -> str:
    """Render a summary as the plain-text block printed by the CLI."""
    lines = [
        "=== SESSION TOOL METRICS ===",
        f"  Session ID:        {summary.session_id}",
        "",
        "TOOL USAGE",
        f"  Total Tool Uses:   {summary.tool_uses}",
        f"  Files Created:     {summary.files_created}",
        f"  Files Modified:    {summary.files_modified}",
        f"  Files Deleted:     {summary.files_deleted}",
        f"  Files Read:        {summary.files_read}",
        f"  Commands Executed: {summary.commands_executed}",
        f"  Searches:          {summary.searches}",
        "",
        "QUALITY",
        f"  Failed Calls:      {summary.failed_calls}",
        f"  Success Rate:      {summary.success_rate:.2f}%",
        f"  Error Rate:        {summary.error_rate:.2f}%",
        f"  Avg Duration:      {summary.avg_duration_ms:.0f} ms",
    ]
    if summary.used_fallback:
        lines.append(
            f"  Note: {summary.heuristic_fraction:.0%} of calls predate operation "
            "tracking and were classified by tool name"
        )
    if detailed and summary.operation_percentages:
        lines += ["", "OPERATION MIX"]
        for operation, share in sorted(
            summary.operation_percentages.items(), key=lambda item: -item[1]
        ):
            lines.append(f"  {operation.value:<18} {share:.1f}%")
    return "\n".join(lines)
