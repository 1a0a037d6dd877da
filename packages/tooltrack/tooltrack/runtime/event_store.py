"""Tool event store — append-only persistence of tool events with SQLite backend.

The layout is versioned. Version 1 is the base ``tool_events`` table;
version 2 adds the nullable ``operation_type`` and ``file_path`` columns.
Migrations only ever add columns and indexes, so rows written under an older
version stay readable and are reported with ``OperationType.UNKNOWN``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from tooltrack.core.errors import EventNotFoundError, SchemaVersionError
from tooltrack.core.identifiers import EventId, SessionId
from tooltrack.schemas.operations import CallStatus, OperationType
from tooltrack.schemas.tool_event import ToolEvent

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 2

_EPOCH = datetime.fromtimestamp(0, UTC)

_MIGRATIONS: dict[int, tuple[str, ...]] = {
    1: (
        """
        CREATE TABLE IF NOT EXISTS tool_events (
            session_id TEXT NOT NULL,
            event_id TEXT NOT NULL,
            seq INTEGER NOT NULL,
            tool_name TEXT NOT NULL,
            status TEXT NOT NULL,
            error_message TEXT,
            started_at TEXT NOT NULL,
            ended_at TEXT,
            duration_ms INTEGER,
            PRIMARY KEY (session_id, event_id)
        )
        """,
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_tool_events_event ON tool_events(event_id)",
        "CREATE INDEX IF NOT EXISTS idx_tool_events_session ON tool_events(session_id, seq)",
        "CREATE INDEX IF NOT EXISTS idx_tool_events_tool_name ON tool_events(tool_name)",
    ),
    2: (
        "ALTER TABLE tool_events ADD COLUMN operation_type TEXT",
        "ALTER TABLE tool_events ADD COLUMN file_path TEXT",
        "CREATE INDEX IF NOT EXISTS idx_tool_events_operation ON tool_events(operation_type)",
        "CREATE INDEX IF NOT EXISTS idx_tool_events_file_path ON tool_events(file_path)",
    ),
}


class ToolEventStore(ABC):
    """Abstract interface for the append-only tool event store."""

    @abstractmethod
    def append(self, event: ToolEvent) -> ToolEvent:
        """Insert a new event. Returns it with its assigned sequence number."""

    @abstractmethod
    def finalize(self, event: ToolEvent) -> bool:
        """Write the completed form of a pending event.

        Only rows that have not ended yet are touched. Returns False when no
        pending row matched.
        """

    @abstractmethod
    def get(self, event_id: EventId) -> ToolEvent:
        """Return one event. Raises EventNotFoundError if absent."""

    @abstractmethod
    def query_by_session(self, session_id: SessionId) -> list[ToolEvent]:
        """Return all events for a session, ordered by sequence number."""

    @abstractmethod
    def list_sessions(self) -> list[SessionId]:
        """Return session ids, most recently active first."""

    @abstractmethod
    def tool_name_counts(self, session_id: SessionId) -> dict[str, int]:
        """Return raw tool-name call counts for a session."""

    def close(self) -> None:
        """Release any held resources."""


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SQLiteToolEventStore(ToolEventStore):
    """SQLite-backed implementation of the tool event store.

    ``target_version`` exists so an older layout can be produced on purpose;
    normal callers leave it at the current version.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        target_version: int = CURRENT_SCHEMA_VERSION,
    ) -> None:
        if not 1 <= target_version <= CURRENT_SCHEMA_VERSION:
            raise ValueError(
                f"target_version must be between 1 and {CURRENT_SCHEMA_VERSION}"
            )
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._conn.execute("PRAGMA journal_mode=WAL")
        try:
            self._migrate(target_version)
        except SchemaVersionError:
            self._conn.close()
            raise
        self._columns = self._table_columns()

    # ── Schema ─────────────────────────────────────────────────────

    @property
    def schema_version(self) -> int:
        with self._lock:
            return self._read_schema_version()

    @property
    def has_operation_columns(self) -> bool:
        return {"operation_type", "file_path"} <= self._columns

    def _read_schema_version(self) -> int:
        has_version_table = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        ).fetchone()
        if has_version_table:
            row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
            if row[0] is not None:
                return int(row[0])
        has_events_table = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='tool_events'"
        ).fetchone()
        return 1 if has_events_table else 0

    def _migrate(self, target_version: int) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = self._read_schema_version()
            if current > CURRENT_SCHEMA_VERSION:
                raise SchemaVersionError(
                    f"Database {self._db_path} is at schema version {current}, "
                    f"newer than supported version {CURRENT_SCHEMA_VERSION}"
                )
            if current >= target_version:
                self._conn.commit()
                return

            logger.info(
                "Migrating tool event store %s from version %d to %d",
                self._db_path,
                current,
                target_version,
            )
            for version in range(current + 1, target_version + 1):
                for statement in _MIGRATIONS[version]:
                    self._conn.execute(statement)
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )
            self._conn.commit()

    def _table_columns(self) -> set[str]:
        with self._lock:
            rows = self._conn.execute("PRAGMA table_info(tool_events)").fetchall()
        return {row["name"] for row in rows}

    # ── Writes ─────────────────────────────────────────────────────

    def append(self, event: ToolEvent) -> ToolEvent:
        """Append an event to the store. Thread-safe."""
        with self._lock:
            row = self._conn.execute(
                "SELECT COALESCE(MAX(seq), -1) + 1 FROM tool_events"
            ).fetchone()
            stored = event.model_copy(update={"seq": int(row[0])})
            values: dict[str, object] = {
                "session_id": stored.session_id,
                "event_id": stored.event_id,
                "seq": stored.seq,
                "tool_name": stored.tool_name,
                "status": stored.success.value,
                "error_message": stored.error,
                "started_at": stored.started_at.isoformat(),
                "ended_at": stored.ended_at.isoformat() if stored.ended_at else None,
                "duration_ms": stored.duration_ms,
            }
            if self.has_operation_columns:
                values["operation_type"] = stored.operation_type.value
                values["file_path"] = stored.file_path
            columns = ", ".join(values)
            placeholders = ", ".join("?" for _ in values)
            self._conn.execute(
                f"INSERT INTO tool_events ({columns}) VALUES ({placeholders})",
                tuple(values.values()),
            )
            self._conn.commit()
        return stored

    def finalize(self, event: ToolEvent) -> bool:
        """Complete a pending row. Rows that already ended are never rewritten."""
        if event.ended_at is None:
            raise ValueError("finalize requires an event with ended_at set")
        assignments = {
            "status": event.success.value,
            "error_message": event.error,
            "ended_at": event.ended_at.isoformat(),
            "duration_ms": event.duration_ms,
        }
        if self.has_operation_columns:
            assignments["operation_type"] = event.operation_type.value
            assignments["file_path"] = event.file_path
        set_clause = ", ".join(f"{name} = ?" for name in assignments)
        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE tool_events SET {set_clause} "
                "WHERE event_id = ? AND ended_at IS NULL",
                (*assignments.values(), event.event_id),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    # ── Reads ──────────────────────────────────────────────────────

    def _row_to_event(self, row: sqlite3.Row) -> ToolEvent | None:
        keys = row.keys()
        raw_operation = row["operation_type"] if "operation_type" in keys else None
        raw_path = row["file_path"] if "file_path" in keys else None

        operation = OperationType.parse(raw_operation)
        file_path = raw_path if isinstance(raw_path, str) and raw_path else None
        if operation.is_file_operation and file_path is None:
            operation = OperationType.UNKNOWN
        if not operation.is_file_operation:
            file_path = None

        started_at = _parse_timestamp(row["started_at"]) or _EPOCH
        ended_at = _parse_timestamp(row["ended_at"])
        status = CallStatus.parse(row["status"], ended=ended_at is not None)
        if ended_at is None:
            status = CallStatus.PENDING
        error = row["error_message"]

        try:
            seq = max(0, int(row["seq"] or 0))
        except (TypeError, ValueError):
            seq = 0

        try:
            return ToolEvent(
                session_id=SessionId(str(row["session_id"])),
                event_id=EventId(str(row["event_id"])),
                seq=seq,
                tool_name=str(row["tool_name"] or ""),
                file_path=file_path,
                operation_type=operation,
                started_at=started_at,
                ended_at=ended_at,
                success=status,
                error=error if isinstance(error, str) else None,
            )
        except ValidationError as exc:
            logger.warning(
                "Tool event row %s is malformed, reading it as unknown: %s",
                row["event_id"],
                exc,
            )
        try:
            return ToolEvent(
                session_id=SessionId(str(row["session_id"])),
                event_id=EventId(str(row["event_id"])),
                seq=seq,
                tool_name=str(row["tool_name"] or ""),
                started_at=started_at,
            )
        except ValidationError as exc:
            logger.warning("Skipping unreadable tool event row %s: %s", row["event_id"], exc)
            return None

    def _rows_to_events(self, rows: list[sqlite3.Row]) -> list[ToolEvent]:
        events = []
        for row in rows:
            event = self._row_to_event(row)
            if event is not None:
                events.append(event)
        return events

    def get(self, event_id: EventId) -> ToolEvent:
        """Return one event by id."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM tool_events WHERE event_id = ?", (event_id,)
            ).fetchone()
        event = self._row_to_event(row) if row is not None else None
        if event is None:
            raise EventNotFoundError(f"Tool event '{event_id}' not found")
        return event

    def query_by_session(self, session_id: SessionId) -> list[ToolEvent]:
        """Return all events for a session, ordered by sequence number."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM tool_events WHERE session_id = ? ORDER BY seq",
                (session_id,),
            ).fetchall()
        return self._rows_to_events(rows)

    def list_sessions(self) -> list[SessionId]:
        """Return session ids, most recently active first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT session_id FROM tool_events "
                "GROUP BY session_id ORDER BY MAX(seq) DESC"
            ).fetchall()
        return [SessionId(row["session_id"]) for row in rows]

    def tool_name_counts(self, session_id: SessionId) -> dict[str, int]:
        """Return raw tool-name call counts for a session, most used first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT tool_name, COUNT(*) AS count FROM tool_events "
                "WHERE session_id = ? GROUP BY tool_name ORDER BY count DESC, tool_name",
                (session_id,),
            ).fetchall()
        return {row["tool_name"]: int(row["count"]) for row in rows}

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
