"""File tracking state — per-session record of which paths the session created.

A tool named "write" cannot say on its own whether it created a file or
overwrote one. The state here combines session history (``created_paths``)
with the filesystem's pre-call answer to settle it, and guarantees a path is
classified ``create`` at most once per session.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from tooltrack.core.identifiers import SessionId
from tooltrack.schemas.operations import CallStatus, OperationType
from tooltrack.schemas.tool_event import ToolEvent
from tooltrack.tools.classifier import normalize_path

logger = logging.getLogger(__name__)

_WRITE_OUTCOMES = (OperationType.CREATE, OperationType.MODIFY)


class ResolutionPolicy(BaseModel):
    """Policy knobs for create-vs-modify resolution."""

    on_existence_error: OperationType = Field(
        default=OperationType.MODIFY,
        description="Result when the pre-call existence check itself fails",
    )

    @field_validator("on_existence_error")
    @classmethod
    def _create_or_modify(cls, value: OperationType) -> OperationType:
        if value not in _WRITE_OUTCOMES:
            raise ValueError("on_existence_error must be 'create' or 'modify'")
        return value


def probe_existence(path: str) -> bool | None:
    """Check whether ``path`` exists right now.

    Returns None when the check itself fails (permissions, I/O errors, a path
    the OS cannot represent), which is distinct from the path being absent.
    """
    try:
        Path(path).stat()
    except (FileNotFoundError, NotADirectoryError):
        return False
    except (OSError, ValueError) as exc:
        logger.warning("Existence check failed for %s: %s", path, exc)
        return None
    return True


class FileTrackingState:
    """Created-path set for one session, guarded by a lock.

    Paths only ever enter the set. A later delete is a separate event and
    does not remove the path.
    """

    def __init__(self, session_id: SessionId) -> None:
        self._session_id = session_id
        self._created: set[str] = set()
        self._lock = threading.Lock()

    @property
    def session_id(self) -> SessionId:
        return self._session_id

    @classmethod
    def from_events(
        cls, session_id: SessionId, events: Iterable[ToolEvent]
    ) -> FileTrackingState:
        """Rebuild state by replaying successful create events."""
        state = cls(session_id)
        for event in events:
            if (
                event.operation_type == OperationType.CREATE
                and event.success == CallStatus.OK
                and event.file_path
            ):
                state._created.add(event.file_path)
        return state

    def has_been_created(self, path: str) -> bool:
        key = normalize_path(path)
        with self._lock:
            return key in self._created

    def mark_created(self, path: str) -> bool:
        """Add ``path`` to the created set. Returns False if it was already there."""
        key = normalize_path(path)
        with self._lock:
            if key in self._created:
                return False
            self._created.add(key)
            return True

    def resolve_write(
        self,
        path: str,
        *,
        existed_before: bool | None,
        success: bool,
        policy: ResolutionPolicy | None = None,
    ) -> OperationType:
        """Settle a finished write as create or modify.

        The membership check and the mark happen in one critical section, so
        concurrent first writes to the same path yield one create.
        """
        if not success:
            return OperationType.MODIFY
        key = normalize_path(path)
        with self._lock:
            result = self._decide(
                key in self._created, existed_before, policy or ResolutionPolicy()
            )
            if result == OperationType.CREATE:
                self._created.add(key)
            return result

    @staticmethod
    def _decide(
        tracked: bool, existed_before: bool | None, policy: ResolutionPolicy
    ) -> OperationType:
        if tracked:
            return OperationType.MODIFY
        if existed_before is None:
            return policy.on_existence_error
        return OperationType.MODIFY if existed_before else OperationType.CREATE

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._created)

    def __len__(self) -> int:
        with self._lock:
            return len(self._created)


class FileTrackingRegistry:
    """Owns the FileTrackingState of every open session."""

    def __init__(self) -> None:
        self._states: dict[SessionId, FileTrackingState] = {}
        self._lock = threading.Lock()

    def open(
        self, session_id: SessionId, history: Iterable[ToolEvent] = ()
    ) -> FileTrackingState:
        """Return the session's state, creating it from ``history`` if needed."""
        with self._lock:
            state = self._states.get(session_id)
            if state is None:
                state = FileTrackingState.from_events(session_id, history)
                self._states[session_id] = state
            return state

    def get(self, session_id: SessionId) -> FileTrackingState | None:
        with self._lock:
            return self._states.get(session_id)

    def close(self, session_id: SessionId) -> FileTrackingState | None:
        with self._lock:
            return self._states.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._states

    def __iter__(self) -> Iterator[SessionId]:
        with self._lock:
            return iter(list(self._states))
