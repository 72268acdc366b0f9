"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

``@tool`` decorator turning a handler function into a ``Tool``.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable

from pydantic import BaseModel

from .base import Tool, ToolFn, ToolSpec


def _first_paragraph(doc: str | None) -> str:
    if not doc:
        return ""
    cleaned = inspect.cleandoc(doc)
    return cleaned.split("\n\n", 1)[0].replace("\n", " ").strip()


def tool(
    *,
    args_model: type[BaseModel],
    name: str | None = None,
    description: str | None = None,
    output_model: type[BaseModel] | None = None,
    timeout: float | None = None,
) -> Callable[[ToolFn], Tool[Any, Any]]:
    """
    Build a ``Tool`` from a handler taking ``(args)`` or ``(args, ctx)``.

    Usage::

        class _EchoArgs(BaseModel):
            text: str

        @tool(args_model=_EchoArgs, description="Echo text back")
        async def echo(args: _EchoArgs) -> str:
            return args.text
    """

    def _wrap(fn: ToolFn) -> Tool[Any, Any]:
        spec = ToolSpec(
            name=name or fn.__name__,
            description=description or _first_paragraph(fn.__doc__),
            parameters_schema=args_model.model_json_schema(),
            output_schema=(
                output_model.model_json_schema(mode="serialization")
                if output_model is not None
                else None
            ),
        )
        return Tool(
            spec=spec,
            fn=fn,
            args_model=args_model,
            output_model=output_model,
            default_timeout=timeout,
        )

    return _wrap
