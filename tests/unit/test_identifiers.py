"""Tests for core identifier types and generation."""

from tooltrack.core.identifiers import (
    EventId,
    SessionId,
    generate_event_id,
    generate_id,
    generate_session_id,
)


class TestGenerateId:
    def test_returns_string(self) -> None:
        assert isinstance(generate_id(), str)

    def test_unique_ids(self) -> None:
        ids = {generate_id() for _ in range(100)}
        assert len(ids) == 100

    def test_uuid4_format(self) -> None:
        id_ = generate_id()
        parts = id_.split("-")
        assert len(parts) == 5
        assert len(id_) == 36


class TestTypedIds:
    def test_session_id_is_str(self) -> None:
        sid: SessionId = generate_session_id()
        assert isinstance(sid, str)

    def test_event_ids_unique(self) -> None:
        ids: set[EventId] = {generate_event_id() for _ in range(50)}
        assert len(ids) == 50
