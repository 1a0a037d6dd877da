"""Operation and call-status enums shared by the recorder and the aggregator."""

from __future__ import annotations

from enum import StrEnum


class OperationType(StrEnum):
    """Resolved operation category persisted with each tool event."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    READ = "read"
    EXECUTE = "execute"
    SEARCH = "search"
    OTHER = "other"
    UNKNOWN = "unknown"
    """Only for rows written before classification existed, or unparsable rows."""

    @classmethod
    def parse(cls, value: object) -> OperationType:
        """Parse a stored value, mapping NULL and garbage to UNKNOWN."""
        if not isinstance(value, str) or not value.strip():
            return cls.UNKNOWN
        normalized = value.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return _LEGACY_OPERATION_ALIASES.get(normalized, cls.UNKNOWN)

    @property
    def is_file_operation(self) -> bool:
        return self in FILE_OPERATIONS


FILE_OPERATIONS = frozenset(
    {OperationType.CREATE, OperationType.MODIFY, OperationType.DELETE}
)

# Names written by the first classified schema, before the enum was narrowed.
_LEGACY_OPERATION_ALIASES: dict[str, OperationType] = {
    "file_create": OperationType.CREATE,
    "file_edit": OperationType.MODIFY,
    "file_read": OperationType.READ,
    "file_delete": OperationType.DELETE,
    "command_execute": OperationType.EXECUTE,
    "navigate": OperationType.OTHER,
}


class CallStatus(StrEnum):
    """Tri-state outcome of a tool call."""

    PENDING = "pending"
    OK = "ok"
    FAILED = "failed"

    @classmethod
    def parse(cls, value: object, *, ended: bool) -> CallStatus:
        """Parse a stored status, tolerating the legacy running/success/error names."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            try:
                return cls(normalized)
            except ValueError:
                alias = _LEGACY_STATUS_ALIASES.get(normalized)
                if alias is not None:
                    return alias
        return cls.FAILED if ended else cls.PENDING


_LEGACY_STATUS_ALIASES: dict[str, CallStatus] = {
    "running": CallStatus.PENDING,
    "success": CallStatus.OK,
    "error": CallStatus.FAILED,
    "cancelled": CallStatus.FAILED,
}
