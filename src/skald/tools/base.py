"""
Base classes for the tool system.

Tools are the way the model acts on the outside world. Each tool has a name,
description, input schema, and execute method. Individual tools live outside
this package; Skald only defines the contract and how results are recorded.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import datetime as _datetime
import typing as _typing

import skald.api.types as api_types

ChunkCallback = _typing.Callable[[str, str, str], _typing.Awaitable[None]]
"""Receives (call_id, tool_name, chunk) for streamed tool output."""


@_dataclasses.dataclass
class ToolResult:
    """
    Result of executing a tool.

    Tools may return this or a plain string (treated as a successful output).
    """

    success: bool
    output: str
    error: str | None = None

    @property
    def text(self) -> str:
        """The text recorded in the tool outcome."""
        if self.success:
            return self.output
        if self.error and self.output:
            return f"{self.error}\n{self.output}"
        return self.error or self.output

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
        }


class ToolSuspended(Exception):
    """
    Raised by a tool to leave its call for external completion.

    The call becomes a suspended outcome; the loop stops with TOOL_SUSPENDED
    and the caller later resumes it by supplying the real outcome.
    """

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or "Tool execution suspended")
        self.reason = reason


@_dataclasses.dataclass
class ToolContext:
    """
    Per-call context handed to Tool.execute().

    Attributes:
        agent_name: Name of the agent running the loop.
        call_id: Id of the invocation being executed.
        tool_name: Name of the tool being executed.
        values: Extra values supplied by the caller (execution context).
    """

    agent_name: str
    call_id: str = ""
    tool_name: str = ""
    values: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    chunk_callback: ChunkCallback | None = _dataclasses.field(default=None, repr=False)
    """Receives chunks passed to emit(). Set by the executor."""

    def get(self, key: str, default: _typing.Any = None) -> _typing.Any:
        return self.values.get(key, default)

    async def emit(self, chunk: str) -> None:
        """Stream a piece of intermediate output to acting-chunk hooks."""
        if self.chunk_callback is not None:
            await self.chunk_callback(self.call_id, self.tool_name, chunk)

    def for_call(self, call_id: str, tool_name: str) -> ToolContext:
        """Return a copy bound to one invocation."""
        return _dataclasses.replace(
            self,
            call_id=call_id,
            tool_name=tool_name,
            values=dict(self.values),
        )


@_dataclasses.dataclass
class ToolMetrics:
    """
    Metrics for a single tool's usage.

    Tracks call counts, durations, and success rates for observability.
    """

    tool_name: str
    call_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    suspended_count: int = 0
    total_duration_ms: float = 0.0
    last_used: str | None = None  # ISO timestamp

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage (0.0 to 100.0)."""
        if self.call_count == 0:
            return 0.0
        return (self.success_count / self.call_count) * 100.0

    @property
    def average_duration_ms(self) -> float:
        if self.call_count == 0:
            return 0.0
        return self.total_duration_ms / self.call_count

    def record_call(
        self,
        success: bool,
        duration_ms: float,
        *,
        suspended: bool = False,
        timestamp: str | None = None,
    ) -> None:
        """
        Record a tool call.

        Args:
            success: Whether the call succeeded
            duration_ms: How long the call took in milliseconds
            suspended: Whether the call was left for external completion
            timestamp: ISO timestamp of the call (default: now)
        """
        self.call_count += 1
        if suspended:
            self.suspended_count += 1
        elif success:
            self.success_count += 1
        else:
            self.failure_count += 1
        self.total_duration_ms += duration_ms
        self.last_used = timestamp or _datetime.datetime.now(_datetime.UTC).isoformat()

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "tool_name": self.tool_name,
            "call_count": self.call_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "suspended_count": self.suspended_count,
            "total_duration_ms": self.total_duration_ms,
            "average_duration_ms": self.average_duration_ms,
            "success_rate": self.success_rate,
            "last_used": self.last_used,
        }


class MetricsCollector:
    """
    Collects tool metrics across a controller's lifetime.

    Always on: the default executor records every call it makes.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, ToolMetrics] = {}

    def record(
        self,
        tool_name: str,
        success: bool,
        duration_ms: float,
        *,
        suspended: bool = False,
        timestamp: str | None = None,
    ) -> None:
        """Record one tool call."""
        if tool_name not in self._metrics:
            self._metrics[tool_name] = ToolMetrics(tool_name=tool_name)
        self._metrics[tool_name].record_call(
            success, duration_ms, suspended=suspended, timestamp=timestamp
        )

    def get(self, tool_name: str) -> ToolMetrics | None:
        return self._metrics.get(tool_name)

    def all(self) -> list[ToolMetrics]:
        """Get all tool metrics, sorted by call count (descending)."""
        return sorted(
            self._metrics.values(),
            key=lambda m: m.call_count,
            reverse=True,
        )

    def to_dict(self) -> dict[str, dict[str, _typing.Any]]:
        return {name: m.to_dict() for name, m in self._metrics.items()}

    def summary(self) -> dict[str, _typing.Any]:
        """Get a summary of all metrics."""
        total_calls = sum(m.call_count for m in self._metrics.values())
        total_success = sum(m.success_count for m in self._metrics.values())
        total_suspended = sum(m.suspended_count for m in self._metrics.values())
        total_duration = sum(m.total_duration_ms for m in self._metrics.values())

        return {
            "total_calls": total_calls,
            "total_success": total_success,
            "total_suspended": total_suspended,
            "total_failures": total_calls - total_success - total_suspended,
            "success_rate": (total_success / total_calls * 100.0) if total_calls else 0.0,
            "total_duration_ms": total_duration,
            "tools_used": len(self._metrics),
        }


class Tool(_abc.ABC):
    """
    Abstract base class for all tools.

    Subclasses must implement:
    - name (property): The tool's identifier (used in invocations)
    - description (property): Human-readable description for the model
    - input_schema (property): JSON schema for the arguments
    - execute(): The actual tool implementation

    execute() may return a ToolResult or a plain string, raise ToolSuspended
    to wait for external completion, or raise any other exception (recorded
    as an error outcome).
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Tool name (e.g., 'search', 'finish')."""
        ...

    @property
    @_abc.abstractmethod
    def description(self) -> str:
        """Human-readable description for the model."""
        ...

    @property
    @_abc.abstractmethod
    def input_schema(self) -> dict[str, _typing.Any]:
        """
        JSON schema for tool arguments.

        This schema is sent to the model to describe what parameters the
        tool accepts.
        """
        ...

    @_abc.abstractmethod
    async def execute(
        self,
        arguments: dict[str, _typing.Any],
        context: ToolContext,
    ) -> ToolResult | str:
        """
        Execute the tool.

        Args:
            arguments: Dictionary matching the input schema
            context: Per-call context (agent name, call id, chunk emitter)

        Returns:
            ToolResult, or a string taken as successful output

        Raises:
            ToolSuspended: To leave the call for external completion
        """
        ...

    def to_schema(self) -> api_types.ToolSchema:
        """Describe this tool for the model."""
        return api_types.ToolSchema(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"
