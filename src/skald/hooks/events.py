"""
Hook phases and event dataclasses.

Every phase boundary of the agent loop fires one event. Events are mutable:
a hook edits the event it receives (or returns a replacement) and the next
hook sees the edited version. Only two events carry loop-control flags:
- PostReasoningEvent: stop_agent() and goto_reasoning()
- PostActingEvent: stop_agent()
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing

import skald.api.types as api_types
import skald.core.types as types


class HookPhase(_enum.Enum):
    """
    Phase boundaries of the agent loop that fire hook events.

    Chunk phases fire once per streamed fragment and are dispatched without
    gating the stream; every other phase is awaited before the loop moves on.
    """

    PRE_REASONING = "pre_reasoning"
    """Before the model call. Can replace the prompt turns and options."""

    REASONING_CHUNK = "reasoning_chunk"
    """Each streamed fragment of the model response. Observe only."""

    POST_REASONING = "post_reasoning"
    """After the model response is complete. Can stop or re-run reasoning."""

    PRE_ACTING = "pre_acting"
    """Before each tool invocation. Can rewrite the arguments."""

    ACTING_CHUNK = "acting_chunk"
    """Intermediate output streamed by a running tool. Observe only."""

    POST_ACTING = "post_acting"
    """After each tool outcome. Can replace the outcome or stop the loop."""

    PRE_SUMMARY = "pre_summary"
    """Before the summary call once the iteration budget is spent."""

    SUMMARY_CHUNK = "summary_chunk"
    """Each streamed fragment of the summary. Observe only."""

    POST_SUMMARY = "post_summary"
    """After the summary is complete. Can replace the summary turn."""

    @property
    def is_chunk(self) -> bool:
        return self in {
            HookPhase.REASONING_CHUNK,
            HookPhase.ACTING_CHUNK,
            HookPhase.SUMMARY_CHUNK,
        }


@_dataclasses.dataclass
class HookEvent:
    """Base class for all hook events."""

    phase: _typing.ClassVar[HookPhase]

    agent_name: str

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to a JSON-serializable summary (used by the logging hook)."""
        return {"phase": self.phase.value, "agent_name": self.agent_name}


@_dataclasses.dataclass
class PreReasoningEvent(HookEvent):
    """
    Fired before each model call.

    Attributes:
        turns: Prompt sent to the model (system prompt plus the log). Hooks may
            edit or replace this list; the log itself is not affected.
        options: Generation options. Fields a hook sets take precedence over
            the controller defaults.
        tool_schemas: Tools offered to the model.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.PRE_REASONING

    turns: list[types.Turn]
    options: api_types.GenerateOptions
    tool_schemas: list[api_types.ToolSchema]

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            **super().to_dict(),
            "turn_count": len(self.turns),
            "tools": [schema.name for schema in self.tool_schemas],
        }


@_dataclasses.dataclass
class ReasoningChunkEvent(HookEvent):
    """
    Fired for every streamed fragment of a model response.

    Attributes:
        chunk: Content of this fragment alone.
        accumulated: Everything received so far in this response.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.REASONING_CHUNK

    chunk: types.Turn
    accumulated: types.Turn

    def to_dict(self) -> dict[str, _typing.Any]:
        return {**super().to_dict(), "chunk": self.chunk.to_dict()}


@_dataclasses.dataclass
class PostReasoningEvent(HookEvent):
    """
    Fired once the model response is complete.

    Attributes:
        turn: The assistant turn, or None when the model produced nothing.
            Hooks may replace it before it is appended.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.POST_REASONING

    turn: types.Turn | None
    stop_requested: bool = _dataclasses.field(default=False, init=False)
    goto_reasoning_requested: bool = _dataclasses.field(default=False, init=False)
    goto_turns: list[types.Turn] = _dataclasses.field(default_factory=list, init=False)

    def stop_agent(self) -> None:
        """
        Stop the loop after this response.

        The response is appended and returned to the caller. Tool calls it
        requested stay pending and can be resumed later.
        """
        self.stop_requested = True

    def goto_reasoning(self, *turns: types.Turn) -> None:
        """
        Discard this response and reason again.

        Args:
            *turns: Turns to append before reasoning again (e.g. a reminder).
        """
        self.goto_reasoning_requested = True
        self.goto_turns.extend(turns)

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            **super().to_dict(),
            "turn": self.turn.to_dict() if self.turn is not None else None,
            "stop_requested": self.stop_requested,
            "goto_reasoning_requested": self.goto_reasoning_requested,
        }


@_dataclasses.dataclass
class PreActingEvent(HookEvent):
    """
    Fired before each tool invocation is executed.

    Attributes:
        invocation: A detached copy of the call about to run. Edit
            ``arguments`` in place or assign it to change what the tool
            receives; the logged invocation is never touched.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.PRE_ACTING

    invocation: types.ToolInvocation

    @property
    def arguments(self) -> dict[str, _typing.Any]:
        return self.invocation.arguments

    @arguments.setter
    def arguments(self, value: dict[str, _typing.Any]) -> None:
        self.invocation = self.invocation.with_arguments(value)

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            **super().to_dict(),
            "tool_id": self.invocation.id,
            "tool_name": self.invocation.name,
            "arguments": dict(self.invocation.arguments),
        }


@_dataclasses.dataclass
class ActingChunkEvent(HookEvent):
    """Fired for each piece of output a running tool emits."""

    phase: _typing.ClassVar[HookPhase] = HookPhase.ACTING_CHUNK

    invocation: types.ToolInvocation
    chunk: str

    def to_dict(self) -> dict[str, _typing.Any]:
        return {**super().to_dict(), "tool_id": self.invocation.id, "chunk": self.chunk}


@_dataclasses.dataclass
class PostActingEvent(HookEvent):
    """
    Fired after each completed tool call, before its turn is appended.

    Attributes:
        invocation: The call that ran.
        outcome: Its outcome. Replacing it rebuilds the tool-result turn.
        turn: The tool-result turn that will be appended.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.POST_ACTING

    invocation: types.ToolInvocation
    outcome: types.ToolOutcome
    turn: types.Turn
    stop_requested: bool = _dataclasses.field(default=False, init=False)

    def stop_agent(self) -> None:
        """Stop the loop once this tool turn is appended."""
        self.stop_requested = True

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            **super().to_dict(),
            "tool_id": self.invocation.id,
            "tool_name": self.invocation.name,
            "is_error": self.outcome.is_error,
            "stop_requested": self.stop_requested,
        }


@_dataclasses.dataclass
class PreSummaryEvent(HookEvent):
    """
    Fired before the summary call.

    Attributes:
        turns: Prompt for the summary (system prompt, log, and directive).
        options: Generation options for the summary call.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.PRE_SUMMARY

    turns: list[types.Turn]
    options: api_types.GenerateOptions

    def to_dict(self) -> dict[str, _typing.Any]:
        return {**super().to_dict(), "turn_count": len(self.turns)}


@_dataclasses.dataclass
class SummaryChunkEvent(HookEvent):
    """Fired for every streamed fragment of the summary."""

    phase: _typing.ClassVar[HookPhase] = HookPhase.SUMMARY_CHUNK

    chunk: types.Turn
    accumulated: types.Turn

    def to_dict(self) -> dict[str, _typing.Any]:
        return {**super().to_dict(), "chunk": self.chunk.to_dict()}


@_dataclasses.dataclass
class PostSummaryEvent(HookEvent):
    """
    Fired once the summary is complete.

    Attributes:
        turn: The summary turn, or None if the model produced nothing.
    """

    phase: _typing.ClassVar[HookPhase] = HookPhase.POST_SUMMARY

    turn: types.Turn | None

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            **super().to_dict(),
            "turn": self.turn.to_dict() if self.turn is not None else None,
        }


EventT = _typing.TypeVar("EventT", bound=HookEvent)
