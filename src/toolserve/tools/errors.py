"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Exception hierarchy for tool registration, validation and execution.
"""

from __future__ import annotations

from typing import Any


class ToolError(RuntimeError):
    """Base class for tool-layer errors."""


class ToolAlreadyRegisteredError(ToolError):
    """Raised when a tool name is registered twice."""


class RegistryFrozenError(ToolError):
    """Raised when a frozen registry is mutated."""


class ToolNotFoundError(ToolError):
    """Raised when a tool name cannot be resolved."""

    def __init__(self, name: str) -> None:
        super().__init__(f"tool not found: {name}")
        self.name = name


class ToolValidationError(ToolError):
    """
    Raised when wire arguments cannot be decoded into a tool's input model.

    ``errors`` holds one ``{"field", "message", "type"}`` entry per problem so
    callers can report exactly which argument was rejected.
    """

    def __init__(self, tool_name: str, errors: list[dict[str, Any]]) -> None:
        details = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"invalid arguments for tool '{tool_name}': {details}")
        self.tool_name = tool_name
        self.errors = errors

    @property
    def fields(self) -> list[str]:
        return [e["field"] for e in self.errors]


class ToolExecutionError(ToolError):
    """Raised by handlers for expected domain failures."""


class ToolCancelledError(ToolExecutionError):
    """Raised when the request owning a tool call has been cancelled."""
