"""Tool classifier — map a tool call to a provisional operation category.

Classification is pure and deterministic: the same tool name and arguments
always produce the same :class:`Classification`. It never raises; a call whose
arguments cannot be read is classified ``UNKNOWN`` and the tool still runs.

The mapping tables below are the single source of truth for name-based
classification. The live path (:func:`classify`) and the legacy fallback used
by the metrics aggregator (:func:`heuristic_operation`) both read them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from tooltrack.schemas.operations import OperationType


class ToolCategory(StrEnum):
    """Provisional category assigned before file-existence disambiguation."""

    WRITE = "write"
    """Ambiguous: creates the file or overwrites an existing one."""

    EDIT = "edit"
    DELETE = "delete"
    READ = "read"
    EXECUTE = "execute"
    SEARCH = "search"
    OTHER = "other"
    UNKNOWN = "unknown"
    """Arguments could not be read for a file tool."""


FILE_CATEGORIES = frozenset({ToolCategory.WRITE, ToolCategory.EDIT, ToolCategory.DELETE})

TOOL_CATEGORIES: dict[str, ToolCategory] = {
    # whole-file writes
    "write": ToolCategory.WRITE,
    "write_file": ToolCategory.WRITE,
    "file_write": ToolCategory.WRITE,
    "create_file": ToolCategory.WRITE,
    "save_file": ToolCategory.WRITE,
    # in-place edits
    "edit": ToolCategory.EDIT,
    "multiedit": ToolCategory.EDIT,
    "edit_file": ToolCategory.EDIT,
    "file_edit": ToolCategory.EDIT,
    "str_replace": ToolCategory.EDIT,
    "replace_in_file": ToolCategory.EDIT,
    "apply_patch": ToolCategory.EDIT,
    "patch": ToolCategory.EDIT,
    "notebookedit": ToolCategory.EDIT,
    # deletes
    "delete": ToolCategory.DELETE,
    "delete_file": ToolCategory.DELETE,
    "file_delete": ToolCategory.DELETE,
    "remove_file": ToolCategory.DELETE,
    # reads
    "read": ToolCategory.READ,
    "read_file": ToolCategory.READ,
    "file_read": ToolCategory.READ,
    "view": ToolCategory.READ,
    "view_file": ToolCategory.READ,
    "cat": ToolCategory.READ,
    # commands
    "shell": ToolCategory.EXECUTE,
    "bash": ToolCategory.EXECUTE,
    "run_command": ToolCategory.EXECUTE,
    "execute_command": ToolCategory.EXECUTE,
    "code_execute": ToolCategory.EXECUTE,
    # searches
    "search": ToolCategory.SEARCH,
    "grep": ToolCategory.SEARCH,
    "glob": ToolCategory.SEARCH,
    "find": ToolCategory.SEARCH,
    "file_search": ToolCategory.SEARCH,
    "web_search": ToolCategory.SEARCH,
}

# Tools whose operation is chosen by a ``command`` argument. The second item is
# the category used when only the name is known (legacy rows).
COMMAND_TOOLS: dict[str, tuple[dict[str, ToolCategory], ToolCategory]] = {
    "text_editor": (
        {
            "write": ToolCategory.WRITE,
            "create": ToolCategory.WRITE,
            "str_replace": ToolCategory.EDIT,
            "edit": ToolCategory.EDIT,
            "replace": ToolCategory.EDIT,
            "insert": ToolCategory.EDIT,
            "undo_edit": ToolCategory.EDIT,
            "view": ToolCategory.READ,
            "read": ToolCategory.READ,
        },
        ToolCategory.EDIT,
    ),
    "str_replace_editor": (
        {
            "create": ToolCategory.WRITE,
            "str_replace": ToolCategory.EDIT,
            "insert": ToolCategory.EDIT,
            "undo_edit": ToolCategory.EDIT,
            "view": ToolCategory.READ,
        },
        ToolCategory.EDIT,
    ),
}

PATH_KEYS = ("path", "file_path", "file", "filename", "filePath")

_EXTENSION_SEPARATORS = ("__", "::")

# Non-ambiguous categories map straight onto an operation.
_DIRECT_OPERATIONS: dict[ToolCategory, OperationType] = {
    ToolCategory.EDIT: OperationType.MODIFY,
    ToolCategory.DELETE: OperationType.DELETE,
    ToolCategory.READ: OperationType.READ,
    ToolCategory.EXECUTE: OperationType.EXECUTE,
    ToolCategory.SEARCH: OperationType.SEARCH,
    ToolCategory.OTHER: OperationType.OTHER,
    ToolCategory.UNKNOWN: OperationType.OTHER,
}


class Classification(BaseModel):
    """Result of classifying one tool call."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    base_name: str
    extension: str | None = None
    category: ToolCategory
    file_path: str | None = None

    @property
    def is_ambiguous(self) -> bool:
        """True when create-vs-modify must be settled against file state."""
        return self.category == ToolCategory.WRITE and self.file_path is not None


def split_extension(tool_name: str) -> tuple[str | None, str]:
    """Split ``extension__tool`` or ``extension::tool`` into its parts."""
    for sep in _EXTENSION_SEPARATORS:
        if sep in tool_name:
            extension, _, name = tool_name.partition(sep)
            if extension and name:
                return extension, name
    return None, tool_name


def category_for_name(tool_name: str) -> ToolCategory:
    """Name-only category lookup shared by the live and legacy paths."""
    _, name = split_extension(tool_name)
    base = name.strip().lower()
    if base in COMMAND_TOOLS:
        return COMMAND_TOOLS[base][1]
    return TOOL_CATEGORIES.get(base, ToolCategory.OTHER)


def normalize_path(path: str, base_dir: str | os.PathLike[str] | None = None) -> str:
    """Expand ``~``, resolve against ``base_dir`` and normalize to an absolute path."""
    expanded = os.path.expanduser(path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(os.fspath(base_dir) if base_dir else os.getcwd(), expanded)
    return os.path.normpath(os.path.abspath(expanded))


def _first_string(args: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = args.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def classify(
    tool_name: str,
    args: Mapping[str, Any] | None = None,
    *,
    base_dir: str | os.PathLike[str] | None = None,
) -> Classification:
    """Classify a tool call by name and arguments."""
    extension, name = split_extension(tool_name)
    base = name.strip().lower()
    mapping = args if isinstance(args, Mapping) else None

    if base in COMMAND_TOOLS:
        commands, _ = COMMAND_TOOLS[base]
        command = _first_string(mapping, ("command",)) if mapping else None
        category = ToolCategory.UNKNOWN
        if command is not None:
            category = commands.get(command.strip().lower(), ToolCategory.UNKNOWN)
    else:
        category = TOOL_CATEGORIES.get(base, ToolCategory.OTHER)

    file_path: str | None = None
    if mapping is not None:
        raw_path = _first_string(mapping, PATH_KEYS)
        if raw_path is not None and category in (*FILE_CATEGORIES, ToolCategory.READ):
            try:
                file_path = normalize_path(raw_path, base_dir)
            except (TypeError, ValueError):
                file_path = None
    if category in FILE_CATEGORIES and file_path is None:
        category = ToolCategory.UNKNOWN

    return Classification(
        tool_name=tool_name,
        base_name=base,
        extension=extension,
        category=category,
        file_path=file_path,
    )


def direct_operation(category: ToolCategory) -> OperationType | None:
    """Operation for a category that needs no disambiguation, else None."""
    return _DIRECT_OPERATIONS.get(category)


def heuristic_operation(
    tool_name: str,
    *,
    ambiguous_write: OperationType = OperationType.MODIFY,
) -> OperationType:
    """Best-effort operation for a tool name alone.

    Used for rows recorded before classification existed. No path or
    existence data is available, so ambiguous writes resolve to
    ``ambiguous_write``.
    """
    category = category_for_name(tool_name)
    if category == ToolCategory.WRITE:
        return ambiguous_write
    return _DIRECT_OPERATIONS[category]
