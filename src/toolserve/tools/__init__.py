"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Tool primitives and the write-once tool registry.
"""

from .base import (
    ProgressSink,
    Tool,
    ToolContext,
    ToolFn,
    ToolResult,
    ToolSpec,
    as_async,
)
from .decorator import tool
from .errors import (
    RegistryFrozenError,
    ToolAlreadyRegisteredError,
    ToolCancelledError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolValidationError,
)
from .registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolSpec",
    "ToolContext",
    "ToolResult",
    "ToolFn",
    "ProgressSink",
    "as_async",
    "tool",
    "ToolRegistry",
    "ToolError",
    "ToolAlreadyRegisteredError",
    "RegistryFrozenError",
    "ToolNotFoundError",
    "ToolValidationError",
    "ToolExecutionError",
    "ToolCancelledError",
]
