"""Tool event record schema."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tooltrack.core.identifiers import EventId, SessionId
from tooltrack.schemas.operations import CallStatus, OperationType


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ToolEvent(BaseModel):
    """Immutable record of a single tool invocation and its resolved classification.

    A pending event has no ``ended_at``. Completing an event produces a new
    record via :meth:`finished`; the stored row is never rewritten afterwards.
    """

    model_config = ConfigDict(frozen=True)

    session_id: SessionId
    event_id: EventId
    seq: int = Field(default=0, ge=0, description="Store insertion order")
    tool_name: str
    file_path: str | None = Field(
        default=None,
        description="Normalized absolute path; only set for create/modify/delete",
    )
    operation_type: OperationType = OperationType.UNKNOWN
    started_at: datetime = Field(default_factory=_utc_now)
    ended_at: datetime | None = None
    success: CallStatus = CallStatus.PENDING
    error: str | None = None

    @model_validator(mode="after")
    def _check_file_path(self) -> ToolEvent:
        if self.operation_type.is_file_operation and not self.file_path:
            raise ValueError(
                f"operation_type '{self.operation_type}' requires a file_path"
            )
        if self.file_path and not self.operation_type.is_file_operation:
            raise ValueError(
                f"file_path is only allowed for create/modify/delete, "
                f"not '{self.operation_type}'"
            )
        if self.ended_at is None and self.success != CallStatus.PENDING:
            raise ValueError("a finished status requires ended_at")
        return self

    @property
    def is_pending(self) -> bool:
        return self.ended_at is None

    @property
    def is_legacy(self) -> bool:
        return self.operation_type == OperationType.UNKNOWN

    @property
    def duration_ms(self) -> int | None:
        if self.ended_at is None:
            return None
        return max(0, int((self.ended_at - self.started_at).total_seconds() * 1000))

    def finished(
        self,
        *,
        success: bool,
        operation_type: OperationType,
        file_path: str | None,
        error: str | None = None,
        ended_at: datetime | None = None,
    ) -> ToolEvent:
        """Return the completed form of this pending event."""
        return ToolEvent(
            session_id=self.session_id,
            event_id=self.event_id,
            seq=self.seq,
            tool_name=self.tool_name,
            file_path=file_path if operation_type.is_file_operation else None,
            operation_type=operation_type,
            started_at=self.started_at,
            ended_at=ended_at or _utc_now(),
            success=CallStatus.OK if success else CallStatus.FAILED,
            error=error,
        )
