"""Tests for tracker settings storage and management."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from tooltrack.core.errors import SettingsError
from tooltrack.schemas.operations import OperationType
from tooltrack.settings import SettingsManager, TrackerSettings


class TestTrackerSettings:
    """Test TrackerSettings model."""

    def test_defaults(self) -> None:
        s = TrackerSettings()
        assert s.db_path.endswith("tool_events.db")
        assert s.on_existence_error == OperationType.MODIFY
        assert s.legacy_write_policy == OperationType.MODIFY
        assert s.cache_stats is True

    def test_policy_must_be_create_or_modify(self) -> None:
        with pytest.raises(ValidationError):
            TrackerSettings(on_existence_error="read")
        with pytest.raises(ValidationError):
            TrackerSettings(legacy_write_policy="unknown")

    def test_resolution_policy(self) -> None:
        s = TrackerSettings(on_existence_error="create")
        assert s.resolution_policy().on_existence_error == OperationType.CREATE

    def test_model_dump_roundtrip(self) -> None:
        s = TrackerSettings(db_path="/data/events.db", cache_stats=False)
        restored = TrackerSettings.model_validate(json.loads(s.model_dump_json()))
        assert restored.db_path == "/data/events.db"
        assert restored.cache_stats is False


class TestSettingsManager:
    """Test SettingsManager load/save/update cycle."""

    @pytest.fixture()
    def tmp_dir(self, tmp_path: Path) -> Path:
        """Return a temporary directory for settings."""
        return tmp_path / "config"

    def test_load_defaults_when_no_file(self, tmp_dir: Path) -> None:
        s = SettingsManager(str(tmp_dir)).load()
        assert s.on_existence_error == OperationType.MODIFY

    def test_save_and_load(self, tmp_dir: Path) -> None:
        sm = SettingsManager(str(tmp_dir))
        sm.save(TrackerSettings(db_path="/x/y.db", legacy_write_policy="create"))
        assert (tmp_dir / "settings.json").exists()
        loaded = sm.load()
        assert loaded.db_path == "/x/y.db"
        assert loaded.legacy_write_policy == OperationType.CREATE

    def test_update_partial(self, tmp_dir: Path) -> None:
        sm = SettingsManager(str(tmp_dir))
        sm.save(TrackerSettings(db_path="/keep.db"))
        updated = sm.update({"cache_stats": False, "db_path": None})
        assert updated.cache_stats is False
        assert updated.db_path == "/keep.db"
        assert sm.load().cache_stats is False

    def test_update_invalid_raises_and_saves_nothing(self, tmp_dir: Path) -> None:
        sm = SettingsManager(str(tmp_dir))
        with pytest.raises(SettingsError):
            sm.update({"on_existence_error": "delete"})
        assert not (tmp_dir / "settings.json").exists()

    def test_load_corrupt_file_returns_defaults(self, tmp_dir: Path) -> None:
        tmp_dir.mkdir(parents=True)
        (tmp_dir / "settings.json").write_text("not json{{{")
        s = SettingsManager(str(tmp_dir)).load()
        assert s.cache_stats is True

    def test_load_invalid_policy_returns_defaults(self, tmp_dir: Path) -> None:
        tmp_dir.mkdir(parents=True)
        (tmp_dir / "settings.json").write_text(json.dumps({"on_existence_error": "read"}))
        s = SettingsManager(str(tmp_dir)).load()
        assert s.on_existence_error == OperationType.MODIFY
