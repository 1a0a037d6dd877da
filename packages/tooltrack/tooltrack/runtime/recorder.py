"""Event recorder — wraps each tool call in a pending/finished tool event.

``begin`` classifies the call, probes pre-call file existence for ambiguous
writes and appends a pending event. ``complete`` resolves the final operation
against the session's FileTrackingState and finalizes the event.

Neither call raises on storage failure. When the store cannot be written the
event is kept in memory as a degraded record and still counts in metrics.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from collections.abc import Mapping
from typing import Any

from tooltrack.core.identifiers import EventId, SessionId, generate_event_id
from tooltrack.runtime.event_store import ToolEventStore
from tooltrack.schemas.operations import OperationType
from tooltrack.schemas.tool_event import ToolEvent
from tooltrack.tools.classifier import (
    Classification,
    ToolCategory,
    classify,
    direct_operation,
    normalize_path,
)
from tooltrack.tracking.file_state import (
    FileTrackingRegistry,
    FileTrackingState,
    ResolutionPolicy,
    probe_existence,
)

logger = logging.getLogger(__name__)

_STORE_ERRORS = (sqlite3.Error, OSError)


class _InFlight:
    """Internal bookkeeping for a call between begin and complete."""

    __slots__ = ("event", "classification", "existed_before", "durable")

    def __init__(
        self,
        event: ToolEvent,
        classification: Classification,
        existed_before: bool | None,
        durable: bool,
    ) -> None:
        self.event = event
        self.classification = classification
        self.existed_before = existed_before
        self.durable = durable


class EventRecorder:
    """Records tool calls into a ToolEventStore with resolved operation metadata."""

    def __init__(
        self,
        store: ToolEventStore,
        *,
        policy: ResolutionPolicy | None = None,
        registry: FileTrackingRegistry | None = None,
    ) -> None:
        self._store = store
        self._policy = policy or ResolutionPolicy()
        self._registry = registry or FileTrackingRegistry()
        self._lock = threading.Lock()
        self._in_flight: dict[EventId, _InFlight] = {}
        self._degraded: dict[SessionId, dict[EventId, ToolEvent]] = {}
        self._generations: dict[SessionId, int] = {}
        self._base_dirs: dict[SessionId, str] = {}

    @property
    def store(self) -> ToolEventStore:
        return self._store

    @property
    def registry(self) -> FileTrackingRegistry:
        return self._registry

    @property
    def policy(self) -> ResolutionPolicy:
        return self._policy

    # ── Session lifecycle ──────────────────────────────────────────

    def open_session(
        self,
        session_id: SessionId,
        *,
        working_dir: str | os.PathLike[str] | None = None,
    ) -> FileTrackingState:
        """Open tracking state for a session, replaying any recorded history."""
        if working_dir is not None:
            with self._lock:
                self._base_dirs[session_id] = normalize_path(os.fspath(working_dir))
        if session_id in self._registry:
            return self._registry.open(session_id)
        return self._registry.open(session_id, self.history(session_id))

    def close_session(self, session_id: SessionId) -> None:
        """Discard the session's in-memory file tracking state.

        The working directory is kept so later lookups of relative paths still
        resolve the way they did while the session was open.
        """
        self._registry.close(session_id)
        with self._lock:
            orphans = [
                eid for eid, call in self._in_flight.items()
                if call.event.session_id == session_id
            ]
        if orphans:
            logger.warning(
                "Closing session %s with %d tool call(s) still in flight",
                session_id,
                len(orphans),
            )

    def file_state(self, session_id: SessionId) -> FileTrackingState:
        """Return the session's FileTrackingState, opening it on first use."""
        state = self._registry.get(session_id)
        if state is None:
            state = self.open_session(session_id)
        return state

    def has_been_created(self, session_id: SessionId, path: str) -> bool:
        """True if the session created ``path``. Closed sessions are rebuilt from history."""
        with self._lock:
            base_dir = self._base_dirs.get(session_id)
        key = normalize_path(path, base_dir)
        state = self._registry.get(session_id)
        if state is None:
            state = FileTrackingState.from_events(session_id, self.history(session_id))
        return state.has_been_created(key)

    # ── Recording ──────────────────────────────────────────────────

    def begin(
        self,
        session_id: SessionId,
        tool_name: str,
        args: Mapping[str, Any] | None = None,
        *,
        path: str | None = None,
    ) -> EventId:
        """Start recording a tool call. Returns the new event id."""
        if args is None and path is not None:
            args = {"path": path}
        with self._lock:
            base_dir = self._base_dirs.get(session_id)
        self.file_state(session_id)

        existed_before: bool | None = None
        try:
            classification = classify(tool_name, args, base_dir=base_dir)
            if classification.is_ambiguous:
                assert classification.file_path is not None
                existed_before = probe_existence(classification.file_path)
        except Exception:
            logger.exception("Could not classify %s; recording it as other", tool_name)
            classification = Classification(
                tool_name=tool_name, base_name=tool_name, category=ToolCategory.OTHER
            )
            existed_before = None

        # Pending writes are stored as modify; only complete claims a create.
        if classification.is_ambiguous:
            provisional = OperationType.MODIFY
        else:
            provisional = direct_operation(classification.category) or OperationType.OTHER

        event = ToolEvent(
            session_id=session_id,
            event_id=generate_event_id(),
            tool_name=tool_name,
            file_path=classification.file_path if provisional.is_file_operation else None,
            operation_type=provisional,
        )

        durable = True
        try:
            event = self._store.append(event)
        except _STORE_ERRORS as exc:
            durable = False
            logger.warning(
                "Could not persist start of %s (%s); keeping it in memory: %s",
                tool_name,
                event.event_id,
                exc,
            )

        with self._lock:
            self._in_flight[event.event_id] = _InFlight(
                event, classification, existed_before, durable
            )
            if not durable:
                self._degraded.setdefault(session_id, {})[event.event_id] = event
            self._bump(session_id)
        return event.event_id

    def complete(
        self,
        event_id: EventId,
        success: bool,
        final_operation_type: OperationType | None = None,
        file_path: str | None = None,
        *,
        error: str | None = None,
    ) -> ToolEvent | None:
        """Finish a recorded call.

        Returns the finished event, or None if ``event_id`` is unknown or was
        already completed.
        """
        with self._lock:
            call = self._in_flight.pop(event_id, None)
        if call is None:
            logger.warning("Ignoring completion of unknown or finished event %s", event_id)
            return None

        operation, path = self._resolve(call, success, final_operation_type, file_path)
        finished = call.event.finished(
            success=success,
            operation_type=operation,
            file_path=path,
            error=error,
        )

        durable = call.durable
        if durable:
            try:
                if not self._store.finalize(finished):
                    logger.warning("Event %s had already ended in the store", event_id)
            except _STORE_ERRORS as exc:
                durable = False
                logger.warning(
                    "Could not persist completion of %s (%s); keeping it in memory: %s",
                    finished.tool_name,
                    event_id,
                    exc,
                )

        session_id = finished.session_id
        with self._lock:
            if not durable:
                self._degraded.setdefault(session_id, {})[event_id] = finished
            self._bump(session_id)
        return finished

    def _resolve(
        self,
        call: _InFlight,
        success: bool,
        requested: OperationType | None,
        file_path: str | None,
    ) -> tuple[OperationType, str | None]:
        classification = call.classification
        session_id = call.event.session_id
        path = classification.file_path
        existed_before = call.existed_before
        if file_path is not None:
            with self._lock:
                base_dir = self._base_dirs.get(session_id)
            override = normalize_path(file_path, base_dir)
            if override != path:
                path, existed_before = override, None

        if requested is None:
            if classification.category == ToolCategory.WRITE and path is not None:
                operation = self.file_state(session_id).resolve_write(
                    path,
                    existed_before=existed_before,
                    success=success,
                    policy=self._policy,
                )
            else:
                operation = direct_operation(classification.category) or OperationType.OTHER
        else:
            operation = requested
            if operation == OperationType.UNKNOWN:
                operation = OperationType.OTHER
            if operation.is_file_operation and path is None:
                logger.warning(
                    "Event %s asked for '%s' without a file path; recording 'other'",
                    call.event.event_id,
                    operation,
                )
                operation = OperationType.OTHER
            if operation == OperationType.CREATE:
                assert path is not None
                if not success or not self.file_state(session_id).mark_created(path):
                    operation = OperationType.MODIFY

        return operation, path if operation.is_file_operation else None

    # ── Reads for aggregation ──────────────────────────────────────

    def _bump(self, session_id: SessionId) -> None:
        self._generations[session_id] = self._generations.get(session_id, 0) + 1

    def generation(self, session_id: SessionId) -> int:
        """Counter that changes whenever the session records a begin or complete."""
        with self._lock:
            return self._generations.get(session_id, 0)

    def memory_events(self, session_id: SessionId) -> list[ToolEvent]:
        """Degraded records held only in memory for a session."""
        with self._lock:
            return list(self._degraded.get(session_id, {}).values())

    def history(self, session_id: SessionId) -> list[ToolEvent]:
        """Store events overlaid with in-memory degraded records."""
        try:
            stored = self._store.query_by_session(session_id)
        except _STORE_ERRORS as exc:
            logger.warning("Could not read tool events for %s: %s", session_id, exc)
            stored = []
        return merge_events(stored, self.memory_events(session_id))


def merge_events(stored: list[ToolEvent], memory: list[ToolEvent]) -> list[ToolEvent]:
    """Combine durable and in-memory events, one record per event id.

    A finished in-memory record replaces a still-pending durable row. Records
    that never reached the store are appended.
    """
    merged: dict[EventId, ToolEvent] = {event.event_id: event for event in stored}
    for event in memory:
        current = merged.get(event.event_id)
        if current is None or (current.is_pending and not event.is_pending):
            merged[event.event_id] = event
    return sorted(merged.values(), key=lambda e: (e.started_at, e.seq))
