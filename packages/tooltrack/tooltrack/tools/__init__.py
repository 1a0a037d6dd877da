"""tooltrack tools — name/argument classification of tool calls."""

from tooltrack.tools.classifier import (
    COMMAND_TOOLS,
    TOOL_CATEGORIES,
    Classification,
    ToolCategory,
    category_for_name,
    classify,
    direct_operation,
    heuristic_operation,
    normalize_path,
    split_extension,
)

__all__ = [
    "COMMAND_TOOLS",
    "TOOL_CATEGORIES",
    "Classification",
    "ToolCategory",
    "category_for_name",
    "classify",
    "direct_operation",
    "heuristic_operation",
    "normalize_path",
    "split_extension",
]
