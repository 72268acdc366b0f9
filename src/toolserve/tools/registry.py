"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

This module implements the ToolRegistry for toolserve.
Tools are registered once at startup, the registry is frozen when a server is
built, and from then on it is only read: resolution, descriptor listing in
registration order and timeout-bounded execution.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from .base import Tool, ToolContext, ToolResult, ToolSpec
from .errors import (
    RegistryFrozenError,
    ToolAlreadyRegisteredError,
    ToolNotFoundError,
)

logger = logging.getLogger("toolserve.tools")


class ToolRegistry:
    """
    Ordered, write-once table of tool name -> ``Tool``.

    Registration order is preserved and used verbatim by ``tools/list``.
    After ``freeze()`` any mutation raises ``RegistryFrozenError``; concurrent
    reads need no locking because nothing writes while serving.
    """

    def __init__(self, *, default_timeout: float | None = None) -> None:
        self._tools: Dict[str, Tool[Any, Any]] = {}
        self._default_timeout = default_timeout
        self._frozen = False

    # ''''''''''''
    # Registration
    # ''''''''''''

    def register(self, tool: Tool[Any, Any]) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{tool.spec.name}': registry is frozen"
            )
        name = tool.spec.name
        if name in self._tools:
            raise ToolAlreadyRegisteredError(f"Tool already registered: {name}")
        self._tools[name] = tool
        logger.debug("Registered tool %s", name)

    def register_many(self, tools: Iterable[Tool[Any, Any]]) -> None:
        for t in tools:
            self.register(t)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ''''''
    # Lookup
    # ''''''

    def resolve(self, name: str) -> Optional[Tool[Any, Any]]:
        return self._tools.get(name)

    def get(self, name: str) -> Tool[Any, Any]:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def list(self) -> List[Tool[Any, Any]]:
        return list(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def has(self, name: str) -> bool:
        return name in self._tools

    def specs(self) -> List[ToolSpec]:
        return [t.spec for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    # '''''''''
    # Execution
    # '''''''''

    async def call(
        self,
        name: str,
        raw_args: Dict[str, Any] | None,
        *,
        ctx: ToolContext | None = None,
        timeout: float | None = None,
    ) -> ToolResult[Any]:
        """
        Execute a registered tool by name.

        Raises ``ToolNotFoundError`` before anything runs and lets
        ``ToolValidationError`` through untouched. Handler failures and
        timeouts come back as failed results.

        Timeout precedence:
          1) call(timeout=...)
          2) tool.default_timeout
          3) registry default_timeout
        """
        tool = self.get(name)
        ctx = ctx or ToolContext()

        effective_timeout = (
            timeout
            if timeout is not None
            else (
                tool.default_timeout
                if tool.default_timeout is not None
                else self._default_timeout
            )
        )

        if effective_timeout is None:
            return await tool.call(raw_args, ctx=ctx)

        # Validate outside the timeout so argument errors are never reported
        # as timeouts.
        tool.validate(raw_args)
        try:
            return await asyncio.wait_for(
                tool.call(raw_args, ctx=ctx),
                timeout=effective_timeout,
            )
        except asyncio.TimeoutError:
            ctx.cancel()
            logger.warning(
                "Tool %s timed out after %s seconds", name, effective_timeout
            )
            return ToolResult(
                tool_name=name,
                success=False,
                error_message=(
                    f"tool '{name}' timed out after {effective_timeout} seconds"
                ),
            )
