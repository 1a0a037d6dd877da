"""Tests for MetricsAggregator and compute_tool_stats."""

import sqlite3

from tooltrack.core.identifiers import SessionId
from tooltrack.metrics.aggregator import MetricsAggregator, compute_tool_stats
from tooltrack.runtime.event_store import SQLiteToolEventStore
from tooltrack.runtime.recorder import EventRecorder
from tooltrack.schemas.operations import CallStatus, OperationType

SID = SessionId("session-metrics")


class TestComputeToolStats:
    def test_empty_session(self) -> None:
        stats = compute_tool_stats(SID, [])
        assert stats.total_calls == 0
        assert stats.calls_by_tool == {}
        assert stats.calls_by_operation == {}
        assert stats.heuristic_fraction == 0.0

    def test_classified_events_counted_as_recorded(self, event_factory) -> None:
        events = [
            event_factory(SID, "write", OperationType.CREATE, "/w/a.py"),
            event_factory(SID, "write", OperationType.MODIFY, "/w/a.py", offset_s=1),
            event_factory(SID, "bash", OperationType.EXECUTE, offset_s=2),
            event_factory(SID, "bash", OperationType.EXECUTE, offset_s=3, success=False),
        ]
        stats = compute_tool_stats(SID, events)
        assert stats.total_calls == 4
        assert stats.calls_by_tool == {"write": 2, "bash": 2}
        assert stats.calls_by_operation == {
            OperationType.CREATE: 1,
            OperationType.MODIFY: 1,
            OperationType.EXECUTE: 2,
        }
        assert stats.heuristic_by_operation == {}
        assert stats.successful_calls == 3
        assert stats.failed_calls == 1
        assert stats.avg_duration_ms == 250.0
        assert [op.operation_type for op in stats.file_operations] == [
            OperationType.CREATE,
            OperationType.MODIFY,
        ]

    def test_mixed_legacy_and_classified(self, event_factory) -> None:
        events = [
            event_factory(SID, "write", OperationType.CREATE, "/w/a"),
            event_factory(SID, "write", OperationType.CREATE, "/w/b", offset_s=1),
            event_factory(SID, "write", OperationType.MODIFY, "/w/a", offset_s=2),
            event_factory(SID, "edit", offset_s=3),
            event_factory(SID, "text_editor", offset_s=4),
        ]
        stats = compute_tool_stats(SID, events)
        assert stats.calls_by_operation == {OperationType.CREATE: 2, OperationType.MODIFY: 3}
        assert stats.classified_by_operation == {
            OperationType.CREATE: 2,
            OperationType.MODIFY: 1,
        }
        assert stats.heuristic_by_operation == {OperationType.MODIFY: 2}
        assert stats.legacy_calls == 2
        assert stats.heuristic_fraction == 2 / 5

    def test_legacy_write_policy(self, event_factory) -> None:
        events = [event_factory(SID, "write")]
        default = compute_tool_stats(SID, events)
        assert default.calls_by_operation == {OperationType.MODIFY: 1}
        creating = compute_tool_stats(SID, events, legacy_write_policy=OperationType.CREATE)
        assert creating.calls_by_operation == {OperationType.CREATE: 1}

    def test_counts_sum_to_total(self, event_factory) -> None:
        tools = ["write", "read_file", "grep", "mystery", "developer__shell", "edit"]
        events = [event_factory(SID, name, offset_s=i) for i, name in enumerate(tools)]
        stats = compute_tool_stats(SID, events)
        assert sum(stats.calls_by_operation.values()) == stats.total_calls
        assert sum(stats.calls_by_tool.values()) == stats.total_calls
        assert OperationType.UNKNOWN not in stats.calls_by_operation

    def test_pending_counted_with_provisional_type(self, event_factory) -> None:
        done = event_factory(SID, "bash", OperationType.EXECUTE)
        pending = done.model_copy(update={"ended_at": None, "success": CallStatus.PENDING})
        stats = compute_tool_stats(SID, [pending])
        assert stats.pending_calls == 1
        assert stats.calls_by_operation == {OperationType.EXECUTE: 1}
        assert stats.avg_duration_ms == 0.0


class TestMetricsAggregator:
    def test_unknown_session_is_empty(self, store) -> None:
        stats = MetricsAggregator(store).calculate_metrics(SessionId("nobody"))
        assert stats.total_calls == 0

    def test_idempotent_reads(self, recorder, store, session_id) -> None:
        eid = recorder.begin(session_id, "bash", {"command": "ls"})
        recorder.complete(eid, True)
        agg = MetricsAggregator(store, recorder=recorder)
        assert agg.calculate_metrics(session_id) == agg.calculate_metrics(session_id)

    def test_cache_invalidated_by_new_events(self, recorder, store, session_id) -> None:
        agg = MetricsAggregator(store, recorder=recorder)
        eid = recorder.begin(session_id, "bash", {"command": "ls"})
        recorder.complete(eid, True)
        assert agg.calculate_metrics(session_id).total_calls == 1
        eid = recorder.begin(session_id, "grep", {"pattern": "x"})
        assert agg.calculate_metrics(session_id).pending_calls == 1
        recorder.complete(eid, True)
        stats = agg.calculate_metrics(session_id)
        assert stats.total_calls == 2
        assert stats.pending_calls == 0

    def test_cached_result_is_a_copy(self, recorder, store, session_id) -> None:
        agg = MetricsAggregator(store, recorder=recorder)
        recorder.complete(recorder.begin(session_id, "bash", {"command": "ls"}), True)
        first = agg.calculate_metrics(session_id)
        first.calls_by_tool["bash"] = 99
        assert agg.calculate_metrics(session_id).calls_by_tool == {"bash": 1}

    def test_without_recorder_reads_store_each_time(self, store, event_factory) -> None:
        agg = MetricsAggregator(store)
        store.append(event_factory(SID, "bash", OperationType.EXECUTE))
        assert agg.calculate_metrics(SID).total_calls == 1
        store.append(event_factory(SID, "bash", OperationType.EXECUTE, offset_s=1))
        assert agg.calculate_metrics(SID).total_calls == 2

    def test_invalidate(self, recorder, store, session_id, event_factory) -> None:
        agg = MetricsAggregator(store, recorder=recorder)
        assert agg.calculate_metrics(session_id).total_calls == 0
        # written behind the recorder's back
        store.append(event_factory(session_id, "bash", OperationType.EXECUTE))
        assert agg.calculate_metrics(session_id).total_calls == 0
        agg.invalidate(session_id)
        assert agg.calculate_metrics(session_id).total_calls == 1

    def test_includes_degraded_records(self, session_id) -> None:
        class BrokenStore(SQLiteToolEventStore):
            def append(self, event):
                raise sqlite3.OperationalError("database is locked")

        broken = BrokenStore(":memory:")
        try:
            rec = EventRecorder(broken)
            rec.complete(rec.begin(session_id, "bash", {"command": "ls"}), True)
            stats = MetricsAggregator(broken, recorder=rec).calculate_metrics(session_id)
            assert stats.total_calls == 1
            assert stats.successful_calls == 1
        finally:
            broken.close()

    def test_all_legacy_database(self, legacy_db) -> None:
        conn = sqlite3.connect(str(legacy_db))
        for seq, tool in enumerate(["write", "write", "read_file", "bash"]):
            conn.execute(
                "INSERT INTO tool_events (session_id, event_id, seq, tool_name, status, "
                "started_at, ended_at, duration_ms) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    "old",
                    f"e{seq}",
                    seq,
                    tool,
                    "success",
                    "2025-01-01T10:00:00+00:00",
                    "2025-01-01T10:00:01+00:00",
                    1000,
                ),
            )
        conn.commit()
        conn.close()

        s = SQLiteToolEventStore(legacy_db, target_version=1)
        try:
            stats = MetricsAggregator(s).calculate_metrics(SessionId("old"))
        finally:
            s.close()
        assert stats.total_calls == 4
        assert stats.legacy_calls == 4
        assert stats.calls_by_operation == {
            OperationType.MODIFY: 2,
            OperationType.READ: 1,
            OperationType.EXECUTE: 1,
        }
        assert stats.avg_duration_ms == 1000.0
