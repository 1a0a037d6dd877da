"""Shared test fixtures for tooltrack."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from tooltrack.core.identifiers import SessionId, generate_event_id, generate_session_id
from tooltrack.runtime.event_store import SQLiteToolEventStore
from tooltrack.runtime.recorder import EventRecorder
from tooltrack.schemas.operations import OperationType
from tooltrack.schemas.tool_event import ToolEvent
from tooltrack.session.tracker import ToolTracker
from tooltrack.settings import TrackerSettings


# ── Fixtures ───────────────────────────────────────────────────────


@pytest.fixture()
def store():
    """In-memory SQLiteToolEventStore at the current schema version."""
    s = SQLiteToolEventStore(":memory:")
    yield s
    s.close()


@pytest.fixture()
def store_file(tmp_path):
    """File-backed SQLiteToolEventStore (for WAL/thread tests)."""
    s = SQLiteToolEventStore(tmp_path / "tool_events.db")
    yield s
    s.close()


@pytest.fixture()
def session_id() -> SessionId:
    """Generate a fresh SessionId."""
    return generate_session_id()


@pytest.fixture()
def recorder(store) -> EventRecorder:
    return EventRecorder(store)


@pytest.fixture()
def tracker(store) -> ToolTracker:
    t = ToolTracker(store, settings=TrackerSettings(db_path=":memory:"))
    yield t
    t.close()


@pytest.fixture()
def workdir(tmp_path):
    """Empty directory for tools to write into."""
    d = tmp_path / "work"
    d.mkdir()
    return d


# ── Builders ───────────────────────────────────────────────────────


_BASE_TIME = datetime(2025, 9, 29, 7, 0, 0, tzinfo=UTC)


def make_event(
    session_id: SessionId,
    tool_name: str,
    operation: OperationType = OperationType.UNKNOWN,
    file_path: str | None = None,
    *,
    offset_s: int = 0,
    success: bool = True,
) -> ToolEvent:
    """Build a finished ToolEvent with deterministic timestamps."""
    started = _BASE_TIME + timedelta(seconds=offset_s)
    pending = ToolEvent(
        session_id=session_id,
        event_id=generate_event_id(),
        tool_name=tool_name,
        started_at=started,
    )
    return pending.finished(
        success=success,
        operation_type=operation,
        file_path=file_path,
        ended_at=started + timedelta(milliseconds=250),
    )


@pytest.fixture()
def event_factory():
    """The make_event builder, for tests that seed stores directly."""
    return make_event


@pytest.fixture()
def legacy_db(tmp_path):
    """Path to a schema-version-1 database (no operation_type/file_path columns)."""
    path = tmp_path / "legacy.db"
    s = SQLiteToolEventStore(path, target_version=1)
    s.close()
    return path
