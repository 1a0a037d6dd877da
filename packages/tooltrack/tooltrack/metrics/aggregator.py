"""Metrics aggregator — per-session tool statistics from recorded tool events."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import Counter
from collections.abc import Iterable

from tooltrack.core.identifiers import SessionId
from tooltrack.runtime.event_store import ToolEventStore
from tooltrack.runtime.recorder import EventRecorder, merge_events
from tooltrack.schemas.operations import CallStatus, OperationType
from tooltrack.schemas.stats import FileOperation, ToolStats
from tooltrack.schemas.tool_event import ToolEvent
from tooltrack.tools.classifier import heuristic_operation

logger = logging.getLogger(__name__)


def compute_tool_stats(
    session_id: str,
    events: Iterable[ToolEvent],
    *,
    legacy_write_policy: OperationType = OperationType.MODIFY,
) -> ToolStats:
    """Compute aggregate statistics from a session's tool events.

    Events with a resolved operation are tallied as recorded. Legacy events
    (``OperationType.UNKNOWN``) are reclassified from the tool name and tallied
    separately before both tallies are merged.
    """
    events = list(events)
    if not events:
        return ToolStats(session_id=session_id)

    calls_by_tool: Counter[str] = Counter()
    classified: Counter[OperationType] = Counter()
    heuristic: Counter[OperationType] = Counter()
    status_counts: Counter[CallStatus] = Counter()
    durations: list[int] = []
    file_ops: list[FileOperation] = []

    for event in events:
        calls_by_tool[event.tool_name] += 1
        status_counts[event.success] += 1

        if event.is_legacy:
            heuristic[
                heuristic_operation(event.tool_name, ambiguous_write=legacy_write_policy)
            ] += 1
        else:
            classified[event.operation_type] += 1

        duration = event.duration_ms
        if duration is not None:
            durations.append(duration)

        if event.file_path:
            file_ops.append(
                FileOperation(
                    file_path=event.file_path,
                    operation_type=event.operation_type,
                    timestamp=event.started_at,
                )
            )

    merged = classified + heuristic
    file_ops.sort(key=lambda op: op.timestamp)

    return ToolStats(
        session_id=session_id,
        total_calls=len(events),
        calls_by_tool=dict(calls_by_tool),
        calls_by_operation=dict(merged),
        classified_by_operation=dict(classified),
        heuristic_by_operation=dict(heuristic),
        successful_calls=status_counts[CallStatus.OK],
        failed_calls=status_counts[CallStatus.FAILED],
        pending_calls=status_counts[CallStatus.PENDING],
        legacy_calls=sum(heuristic.values()),
        avg_duration_ms=sum(durations) / len(durations) if durations else 0.0,
        file_operations=file_ops,
    )


class MetricsAggregator:
    """Computes ToolStats on demand, caching per session.

    With a recorder attached, in-memory degraded records are merged into the
    stored events and the cache is invalidated by the recorder's per-session
    generation counter. Without one nothing is cached.
    """

    def __init__(
        self,
        store: ToolEventStore,
        *,
        recorder: EventRecorder | None = None,
        legacy_write_policy: OperationType = OperationType.MODIFY,
        cache_stats: bool = True,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._legacy_write_policy = legacy_write_policy
        self._cache_enabled = cache_stats and recorder is not None
        self._cache: dict[SessionId, tuple[int, ToolStats]] = {}
        self._lock = threading.Lock()

    def calculate_metrics(self, session_id: SessionId) -> ToolStats:
        """Return tool statistics for a session. Never fails on legacy rows."""
        generation = self._recorder.generation(session_id) if self._recorder else 0

        if self._cache_enabled:
            with self._lock:
                cached = self._cache.get(session_id)
            if cached is not None and cached[0] == generation:
                return cached[1].model_copy(deep=True)

        stats = compute_tool_stats(
            session_id,
            self._load_events(session_id),
            legacy_write_policy=self._legacy_write_policy,
        )

        if self._cache_enabled:
            with self._lock:
                self._cache[session_id] = (generation, stats)
            return stats.model_copy(deep=True)
        return stats

    def invalidate(self, session_id: SessionId | None = None) -> None:
        """Drop cached stats for one session, or for all sessions."""
        with self._lock:
            if session_id is None:
                self._cache.clear()
            else:
                self._cache.pop(session_id, None)

    def _load_events(self, session_id: SessionId) -> list[ToolEvent]:
        if self._recorder is not None and self._recorder.store is self._store:
            return self._recorder.history(session_id)
        try:
            stored = self._store.query_by_session(session_id)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Could not read tool events for %s: %s", session_id, exc)
            stored = []
        if self._recorder is None:
            return stored
        return merge_events(stored, self._recorder.memory_events(session_id))
