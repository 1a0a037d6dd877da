"""Tests for SessionSummary derivation and the plain-text report."""

from tooltrack.core.identifiers import SessionId
from tooltrack.metrics.aggregator import compute_tool_stats
from tooltrack.metrics.summary import format_summary, summarize
from tooltrack.schemas.operations import OperationType
from tooltrack.schemas.stats import ToolStats

SID = SessionId("session-summary")


def _stats(event_factory) -> ToolStats:
    return compute_tool_stats(
        SID,
        [
            event_factory(SID, "write", OperationType.CREATE, "/w/a"),
            event_factory(SID, "write", OperationType.MODIFY, "/w/a", offset_s=1),
            event_factory(SID, "read_file", OperationType.READ, offset_s=2),
            event_factory(SID, "bash", OperationType.EXECUTE, offset_s=3, success=False),
        ],
    )


class TestSummarize:
    def test_counts(self, event_factory) -> None:
        s = summarize(_stats(event_factory))
        assert s.tool_uses == 4
        assert s.files_created == 1
        assert s.files_modified == 1
        assert s.files_read == 1
        assert s.commands_executed == 1
        assert s.failed_calls == 1
        assert s.success_rate == 75.0
        assert s.error_rate == 25.0
        assert s.operation_percentages[OperationType.CREATE] == 25.0
        assert not s.used_fallback

    def test_empty_session(self) -> None:
        s = summarize(ToolStats(session_id=SID))
        assert s.tool_uses == 0
        assert s.success_rate == 100.0
        assert s.operation_percentages == {}

    def test_fallback_flag(self, event_factory) -> None:
        stats = compute_tool_stats(SID, [event_factory(SID, "edit")])
        s = summarize(stats)
        assert s.used_fallback
        assert s.heuristic_fraction == 1.0
        assert s.files_modified == 1


class TestFormatSummary:
    def test_sections(self, event_factory) -> None:
        text = format_summary(summarize(_stats(event_factory)))
        assert text.startswith("=== SESSION TOOL METRICS ===")
        assert "Files Created:     1" in text
        assert "Success Rate:      75.00%" in text
        assert "OPERATION MIX" not in text
        assert "Note:" not in text

    def test_detailed_mix(self, event_factory) -> None:
        text = format_summary(summarize(_stats(event_factory)), detailed=True)
        assert "OPERATION MIX" in text
        assert "create" in text

    def test_fallback_note(self, event_factory) -> None:
        stats = compute_tool_stats(SID, [event_factory(SID, "write")])
        text = format_summary(summarize(stats))
        assert "Note: 100% of calls predate operation tracking" in text
