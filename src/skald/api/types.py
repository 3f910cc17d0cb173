"""
Type definitions for model transport interactions.

These types describe what the agent loop consumes from a model provider:
normalized stream events, usage information, tool schemas, and generation
options. Provider wire formats are translated into these by the transport.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

if _typing.TYPE_CHECKING:
    import skald.core.policy as policy


@_dataclasses.dataclass(frozen=True)
class Usage:
    """Token usage information."""

    input_tokens: int = 0
    output_tokens: int = 0

    reasoning_tokens: int | None = None
    """Tokens used for reasoning/thinking (subset of output_tokens)."""

    cost: float | None = None
    """Total cost in USD for this request, when the provider reports it."""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        result: dict[str, _typing.Any] = {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }
        if self.reasoning_tokens is not None:
            result["reasoning_tokens"] = self.reasoning_tokens
        if self.cost is not None:
            result["cost"] = self.cost
        return result

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Usage:
        """Create from dictionary."""
        return cls(
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            reasoning_tokens=data.get("reasoning_tokens"),
            cost=data.get("cost"),
        )


StreamEventType = _typing.Literal[
    "thinking_delta",
    "text_delta",
    "tool_call_delta",
    "message_stop",
]


@_dataclasses.dataclass(frozen=True)
class StreamEvent:
    """
    Provider-agnostic stream fragment.

    Different providers emit different chunk shapes, but transports normalize
    them to this structure. A model turn is a sequence of deltas followed by
    one ``message_stop`` marker carrying usage and the finish reason.
    """

    type: StreamEventType

    # Text content (for text_delta events)
    text: str | None = None

    # Thinking/reasoning content (for thinking_delta events)
    thinking: str | None = None

    # Tool call fragment (for tool_call_delta events). The first fragment of a
    # call carries the id and name; continuations may carry neither.
    tool_call_id: str | None = None
    tool_name: str | None = None
    arguments_delta: str | None = None
    arguments: dict[str, _typing.Any] | None = None
    """Complete arguments, for transports that deliver a call in one piece."""

    # End-of-stream metadata (for message_stop)
    usage: Usage | None = None
    stop_reason: str | None = None

    @classmethod
    def text_delta(cls, text: str) -> StreamEvent:
        return cls(type="text_delta", text=text)

    @classmethod
    def thinking_delta(cls, thinking: str) -> StreamEvent:
        return cls(type="thinking_delta", thinking=thinking)

    @classmethod
    def tool_call(
        cls,
        *,
        call_id: str | None = None,
        name: str | None = None,
        arguments_delta: str | None = None,
        arguments: dict[str, _typing.Any] | None = None,
    ) -> StreamEvent:
        return cls(
            type="tool_call_delta",
            tool_call_id=call_id,
            tool_name=name,
            arguments_delta=arguments_delta,
            arguments=arguments,
        )

    @classmethod
    def stop(
        cls,
        stop_reason: str | None = "stop",
        usage: Usage | None = None,
    ) -> StreamEvent:
        return cls(type="message_stop", stop_reason=stop_reason, usage=usage)


@_dataclasses.dataclass(frozen=True)
class ToolSchema:
    """Tool definition sent to the model."""

    name: str
    description: str
    input_schema: dict[str, _typing.Any]

    def to_openai_format(self) -> dict[str, _typing.Any]:
        """Convert to OpenAI-compatible function format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


@_dataclasses.dataclass
class GenerateOptions:
    """
    Generation options for one model call.

    Fields left as None fall back to the defaults they are merged over, so a
    hook can override a single option without restating the rest.
    """

    temperature: float | None = None
    max_tokens: int | None = None

    tool_choice: str | None = None
    """"auto", "none", "required", or the name of a specific tool."""

    execution_policy: policy.ExecutionPolicy | None = None
    """Timeout/retry policy the transport applies to this request."""

    extra: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    """Provider-specific passthrough parameters."""

    def merged_with(self, defaults: GenerateOptions | None) -> GenerateOptions:
        """Return a copy where unset fields are taken from ``defaults``."""
        if defaults is None:
            return _dataclasses.replace(self, extra=dict(self.extra))
        return GenerateOptions(
            temperature=self.temperature if self.temperature is not None else defaults.temperature,
            max_tokens=self.max_tokens if self.max_tokens is not None else defaults.max_tokens,
            tool_choice=self.tool_choice if self.tool_choice is not None else defaults.tool_choice,
            execution_policy=(
                self.execution_policy
                if self.execution_policy is not None
                else defaults.execution_policy
            ),
            extra={**defaults.extra, **self.extra},
        )
