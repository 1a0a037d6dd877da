"""Tests for core error hierarchy."""

import pytest

from tooltrack.core.errors import (
    EventNotFoundError,
    SchemaVersionError,
    SessionNotFoundError,
    SettingsError,
    ToolTrackError,
)


class TestErrorHierarchy:
    def test_base_error_is_exception(self) -> None:
        assert issubclass(ToolTrackError, Exception)

    @pytest.mark.parametrize(
        "error_cls",
        [SchemaVersionError, EventNotFoundError, SessionNotFoundError, SettingsError],
    )
    def test_subclasses_share_base(self, error_cls: type[Exception]) -> None:
        assert issubclass(error_cls, ToolTrackError)


class TestErrorRaising:
    def test_raise_schema_version(self) -> None:
        with pytest.raises(SchemaVersionError, match="newer"):
            raise SchemaVersionError("database is newer")

    def test_catch_all_via_base(self) -> None:
        with pytest.raises(ToolTrackError):
            raise SessionNotFoundError("caught by base")
