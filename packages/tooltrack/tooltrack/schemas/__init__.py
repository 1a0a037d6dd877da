"""tooltrack schemas — Pydantic v2 models for events and statistics."""

from tooltrack.schemas.operations import FILE_OPERATIONS, CallStatus, OperationType
from tooltrack.schemas.stats import FileOperation, ToolStats
from tooltrack.schemas.tool_event import ToolEvent

__all__ = [
    "FILE_OPERATIONS",
    "CallStatus",
    "FileOperation",
    "OperationType",
    "ToolEvent",
    "ToolStats",
]
