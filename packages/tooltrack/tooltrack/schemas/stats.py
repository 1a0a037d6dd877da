"""Derived statistics schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from tooltrack.schemas.operations import OperationType


class FileOperation(BaseModel):
    """One file-affecting event in a session's timeline."""

    file_path: str
    operation_type: OperationType
    timestamp: datetime


class ToolStats(BaseModel):
    """Aggregate tool statistics for one session.

    ``calls_by_operation`` merges ``classified_by_operation`` (recorded with a
    resolved type) and ``heuristic_by_operation`` (legacy rows reclassified by
    tool name). Zero counts are never present as keys.
    """

    session_id: str = ""
    total_calls: int = 0
    calls_by_tool: dict[str, int] = Field(default_factory=dict)
    calls_by_operation: dict[OperationType, int] = Field(default_factory=dict)
    classified_by_operation: dict[OperationType, int] = Field(default_factory=dict)
    heuristic_by_operation: dict[OperationType, int] = Field(default_factory=dict)
    successful_calls: int = 0
    failed_calls: int = 0
    pending_calls: int = 0
    legacy_calls: int = 0
    avg_duration_ms: float = Field(ge=0.0, default=0.0)
    file_operations: list[FileOperation] = Field(default_factory=list)

    @property
    def heuristic_fraction(self) -> float:
        """Share of calls whose operation came from the name heuristic."""
        if self.total_calls == 0:
            return 0.0
        return self.legacy_calls / self.total_calls

    def count(self, operation: OperationType) -> int:
        return self.calls_by_operation.get(operation, 0)
