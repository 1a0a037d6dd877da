"""Tool tracker — session-facing entry point for the tool dispatch loop.

The dispatch loop calls :meth:`ToolTracker.begin_event` before executing a
tool and :meth:`ToolTracker.complete_event` afterwards (or wraps the call in
:meth:`ToolTracker.run_tool`). Reporting code reads :meth:`get_tool_stats`.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeVar

from tooltrack.core.errors import SessionNotFoundError
from tooltrack.core.identifiers import EventId, SessionId, generate_session_id
from tooltrack.metrics.aggregator import MetricsAggregator
from tooltrack.metrics.summary import SessionSummary, summarize
from tooltrack.runtime.event_store import SQLiteToolEventStore, ToolEventStore
from tooltrack.runtime.recorder import EventRecorder
from tooltrack.schemas.operations import OperationType
from tooltrack.schemas.stats import ToolStats
from tooltrack.schemas.tool_event import ToolEvent
from tooltrack.settings import TrackerSettings
from tooltrack.tools.classifier import (
    Classification,
    ToolCategory,
    classify,
    direct_operation,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(StrEnum):
    """Lifecycle states for a tracked session."""

    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class _SessionRecord:
    """Internal bookkeeping for a session."""

    __slots__ = ("session_id", "working_dir", "state", "started_at", "ended_at")

    def __init__(self, session_id: SessionId, working_dir: str | None) -> None:
        self.session_id = session_id
        self.working_dir = working_dir
        self.state = SessionState.ACTIVE
        self.started_at = datetime.now(UTC)
        self.ended_at: datetime | None = None


class ToolTracker:
    """Classifies, records and reports tool calls for agent sessions.

    Each session owns its file tracking state from ``start_session`` until
    ``end_session``. Calls for a session that was never started open it
    implicitly, so recording never blocks tool execution.
    """

    def __init__(
        self,
        store: ToolEventStore | None = None,
        *,
        settings: TrackerSettings | None = None,
    ) -> None:
        self._settings = settings or TrackerSettings()
        self._owns_store = store is None
        self._store = store if store is not None else SQLiteToolEventStore(self._settings.db_path)
        self._recorder = EventRecorder(
            self._store, policy=self._settings.resolution_policy()
        )
        self._aggregator = MetricsAggregator(
            self._store,
            recorder=self._recorder,
            legacy_write_policy=self._settings.legacy_write_policy,
            cache_stats=self._settings.cache_stats,
        )
        self._sessions: dict[SessionId, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def recorder(self) -> EventRecorder:
        return self._recorder

    @property
    def aggregator(self) -> MetricsAggregator:
        return self._aggregator

    @property
    def store(self) -> ToolEventStore:
        return self._store

    # ── Session lifecycle ──────────────────────────────────────────

    def start_session(
        self,
        session_id: SessionId | None = None,
        *,
        working_dir: str | os.PathLike[str] | None = None,
    ) -> SessionId:
        """Begin tracking a session. Returns its id."""
        sid = session_id or generate_session_id()
        wd = os.fspath(working_dir) if working_dir is not None else None
        with self._lock:
            record = self._sessions.get(sid)
            if record is not None and record.state == SessionState.ACTIVE:
                return sid
            self._sessions[sid] = _SessionRecord(sid, wd)
        self._recorder.open_session(sid, working_dir=wd)
        logger.info("Tracking session %s", sid)
        return sid

    def end_session(self, session_id: SessionId) -> None:
        """Stop tracking a session and drop its in-memory file state."""
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None or record.state != SessionState.ACTIVE:
                raise SessionNotFoundError(f"Session '{session_id}' is not active")
            record.state = SessionState.ENDED
            record.ended_at = datetime.now(UTC)
        self._recorder.close_session(session_id)
        logger.info("Stopped tracking session %s", session_id)

    def session_state(self, session_id: SessionId) -> SessionState | None:
        with self._lock:
            record = self._sessions.get(session_id)
            return record.state if record else None

    def active_sessions(self) -> list[SessionId]:
        with self._lock:
            return [
                sid for sid, record in self._sessions.items()
                if record.state == SessionState.ACTIVE
            ]

    def _ensure_session(self, session_id: SessionId) -> None:
        with self._lock:
            record = self._sessions.get(session_id)
        if record is None or record.state != SessionState.ACTIVE:
            logger.debug("Implicitly starting session %s", session_id)
            self.start_session(session_id)

    # ── Dispatch-loop interface ────────────────────────────────────

    def classify(
        self,
        tool_name: str,
        args: Mapping[str, Any] | None = None,
        *,
        session_id: SessionId | None = None,
    ) -> Classification:
        """Classify a tool call before execution. Pure; records nothing."""
        base_dir = None
        if session_id is not None:
            with self._lock:
                record = self._sessions.get(session_id)
            base_dir = record.working_dir if record else None
        return classify(tool_name, args, base_dir=base_dir)

    def begin_event(
        self,
        session_id: SessionId,
        tool_name: str,
        path: str | None = None,
        *,
        args: Mapping[str, Any] | None = None,
    ) -> EventId:
        """Record the start of a tool call."""
        self._ensure_session(session_id)
        return self._recorder.begin(session_id, tool_name, args, path=path)

    def complete_event(
        self,
        event_id: EventId,
        success: bool,
        resolved_category: OperationType | ToolCategory | None = None,
        *,
        error: str | None = None,
    ) -> ToolEvent | None:
        """Record the end of a tool call.

        ``resolved_category`` may be a final OperationType, a ToolCategory, or
        None to let the recorder resolve it. An ambiguous WRITE category is
        always resolved by the recorder.
        """
        operation: OperationType | None
        if isinstance(resolved_category, ToolCategory):
            operation = (
                None
                if resolved_category == ToolCategory.WRITE
                else direct_operation(resolved_category)
            )
        else:
            operation = resolved_category
        return self._recorder.complete(event_id, success, operation, error=error)

    def run_tool(
        self,
        session_id: SessionId,
        tool_name: str,
        args: Mapping[str, Any] | None,
        fn: Callable[[], T],
    ) -> T:
        """Execute ``fn`` wrapped in begin/complete events. Re-raises its errors."""
        event_id = self.begin_event(session_id, tool_name, args=args)
        try:
            result = fn()
        except Exception as exc:
            self.complete_event(event_id, False, error=str(exc))
            raise
        self.complete_event(event_id, True)
        return result

    # ── Reporting interface ────────────────────────────────────────

    def get_tool_stats(self, session_id: SessionId) -> ToolStats:
        return self._aggregator.calculate_metrics(session_id)

    def has_file_been_created(self, session_id: SessionId, path: str) -> bool:
        return self._recorder.has_been_created(session_id, path)

    def summary(self, session_id: SessionId) -> SessionSummary:
        return summarize(self.get_tool_stats(session_id))

    def close(self) -> None:
        """End active sessions and close the store if this tracker opened it."""
        for sid in self.active_sessions():
            self.end_session(sid)
        if self._owns_store:
            self._store.close()
