"""Tracker settings — local configuration persistence."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from tooltrack.core.errors import SettingsError
from tooltrack.schemas.operations import OperationType
from tooltrack.tracking.file_state import ResolutionPolicy

logger = logging.getLogger(__name__)

_DEFAULT_DIR = os.path.expanduser("~/.tooltrack")
_SETTINGS_FILE = "settings.json"
_POLICY_VALUES = (OperationType.CREATE, OperationType.MODIFY)


class TrackerSettings(BaseModel):
    """User-configurable tracker settings, persisted to local filesystem."""

    db_path: str = Field(
        default_factory=lambda: os.path.expanduser("~/.tooltrack/tool_events.db")
    )

    # Result for a write whose pre-call existence check failed
    on_existence_error: OperationType = OperationType.MODIFY

    # Result for legacy write rows, where no existence data was ever recorded
    legacy_write_policy: OperationType = OperationType.MODIFY

    cache_stats: bool = True

    @field_validator("on_existence_error", "legacy_write_policy")
    @classmethod
    def _create_or_modify(cls, value: OperationType) -> OperationType:
        if value not in _POLICY_VALUES:
            raise ValueError("policy must be 'create' or 'modify'")
        return value

    def resolution_policy(self) -> ResolutionPolicy:
        return ResolutionPolicy(on_existence_error=self.on_existence_error)


class SettingsManager:
    """Manages loading and saving tracker settings from local filesystem."""

    def __init__(self, config_dir: str | None = None) -> None:
        self._config_dir = Path(config_dir or _DEFAULT_DIR)

    @property
    def _settings_path(self) -> Path:
        return self._config_dir / _SETTINGS_FILE

    def load(self) -> TrackerSettings:
        """Load settings from disk. Returns defaults if file doesn't exist."""
        if not self._settings_path.exists():
            return TrackerSettings()
        try:
            data = json.loads(self._settings_path.read_text())
            return TrackerSettings.model_validate(data)
        except Exception as exc:
            logger.warning("Failed to load settings from %s: %s", self._settings_path, exc)
            return TrackerSettings()

    def save(self, settings: TrackerSettings) -> None:
        """Save settings to disk."""
        self._config_dir.mkdir(parents=True, exist_ok=True)
        self._settings_path.write_text(
            settings.model_dump_json(indent=2) + "\n"
        )

    def update(self, updates: dict[str, Any]) -> TrackerSettings:
        """Load current settings, apply updates, save, and return.

        Raises SettingsError if the result is invalid; nothing is saved then.
        """
        current = self.load().model_dump()
        current.update({k: v for k, v in updates.items() if v is not None})
        try:
            updated = TrackerSettings.model_validate(current)
        except ValidationError as exc:
            raise SettingsError(f"Invalid tracker settings: {exc}") from exc
        self.save(updated)
        return updated
