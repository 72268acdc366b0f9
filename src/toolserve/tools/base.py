"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Core tool primitives: descriptors, per-call context, results and the
``Tool`` wrapper that owns argument decoding and output encoding.

Handlers never see raw JSON. ``Tool.validate`` turns untyped wire arguments
into the handler's pydantic input model (declared defaults included) and
``Tool.encode_output`` turns the typed return value back into wire JSON.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic_core import to_jsonable_python

from .errors import ToolCancelledError, ToolValidationError

ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")

ToolFn = Callable[..., Any]
ProgressSink = Callable[[float, float | None, str | None], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """
    Immutable descriptor advertised in ``tools/list``.

    Attributes:
        name: Unique tool name.
        description: Human readable summary.
        parameters_schema: JSON Schema of accepted arguments.
        output_schema: JSON Schema of the structured output, if typed.
    """

    name: str
    description: str
    parameters_schema: dict[str, Any] = field(default_factory=dict)
    output_schema: dict[str, Any] | None = None


@dataclass(slots=True)
class ToolContext:
    """Per-call context handed to handlers that accept a second argument."""

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    metadata: dict[str, Any] = field(default_factory=dict)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    progress_sink: ProgressSink | None = None
    # Request-level event; setting it cancels every call of the request.
    parent_cancel_event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        if self.cancel_event.is_set():
            return True
        return self.parent_cancel_event is not None and self.parent_cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()

    def raise_if_cancelled(self) -> None:
        """Handlers call this before each external call."""
        if self.cancelled:
            raise ToolCancelledError(f"request {self.request_id} was cancelled")

    async def report_progress(
        self,
        progress: float,
        total: float | None = None,
        message: str | None = None,
    ) -> None:
        if self.progress_sink is None:
            return
        await self.progress_sink(progress, total, message)


@dataclass(frozen=True, slots=True)
class ToolResult(Generic[ReturnT]):
    tool_name: str
    success: bool
    output: ReturnT | None = None
    error_message: str | None = None


def as_async(fn: ToolFn) -> Callable[..., Awaitable[Any]]:
    """Wrap a plain function so it runs in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return fn

    @functools.wraps(fn)
    async def _runner(*args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)

    return _runner


def _accepts_context(fn: ToolFn) -> bool:
    params = list(inspect.signature(fn).parameters.values())
    positional = [
        p
        for p in params
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 2 or any(p.name == "ctx" for p in params)


def _format_errors(exc: ValidationError) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for err in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", ()))
        out.append(
            {
                "field": loc or "arguments",
                "message": err.get("msg", "invalid value"),
                "type": err.get("type", "value_error"),
            }
        )
    return out


class Tool(Generic[ArgsT, ReturnT]):
    """A named handler with a typed input model and optional typed output."""

    def __init__(
        self,
        *,
        spec: ToolSpec,
        fn: ToolFn,
        args_model: type[ArgsT],
        output_model: type[BaseModel] | None = None,
        default_timeout: float | None = None,
    ) -> None:
        self.spec = spec
        self.args_model = args_model
        self.output_model = output_model
        self.default_timeout = default_timeout
        self._fn = as_async(fn)
        self._takes_ctx = _accepts_context(fn)

    def __repr__(self) -> str:
        return f"Tool(name={self.spec.name!r})"

    def validate(self, raw_args: dict[str, Any] | None) -> ArgsT:
        try:
            return self.args_model.model_validate(raw_args or {})
        except ValidationError as exc:
            raise ToolValidationError(self.spec.name, _format_errors(exc)) from exc

    def encode_output(self, value: Any) -> Any:
        # Only fields never set are elided; they decode back to their default.
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", exclude_unset=True)
        if self.output_model is not None and value is not None:
            return self.output_model.model_validate(value).model_dump(
                mode="json", exclude_unset=True
            )
        return to_jsonable_python(value)

    async def invoke(self, args: ArgsT, ctx: ToolContext) -> ReturnT:
        if self._takes_ctx:
            return await self._fn(args, ctx)
        return await self._fn(args)

    async def call(
        self,
        raw_args: dict[str, Any] | None,
        *,
        ctx: ToolContext | None = None,
    ) -> ToolResult[Any]:
        """
        Decode, invoke and encode one call.

        ``ToolValidationError`` propagates so the caller can report it as an
        argument problem; every other handler exception becomes a failed
        result carrying the original message.
        """
        args = self.validate(raw_args)
        ctx = ctx or ToolContext()
        try:
            value = await self.invoke(args, ctx)
            output = self.encode_output(value)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            return ToolResult(
                tool_name=self.spec.name,
                success=False,
                error_message=str(exc) or type(exc).__name__,
            )
        return ToolResult(tool_name=self.spec.name, success=True, output=output)
