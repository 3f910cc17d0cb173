"""
Core data types for Skald.

A conversation is an append-only sequence of Turns. Each Turn holds an
ordered tuple of content blocks: text, reasoning, tool invocations, and tool
outcomes. All of these are immutable; corrections happen by appending new
turns, never by rewriting old ones.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing
import uuid as _uuid

import skald.api.types as api_types
import skald.constants as _constants


class Role(_enum.Enum):
    """Actor role of a turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class GenerateReason(_enum.Enum):
    """
    Why the loop produced a terminal turn.

    This is the caller-visible outcome of the state machine.
    """

    MODEL_STOP = "model_stop"
    """The model finished without requesting (registered) tools."""

    REASONING_STOP_REQUESTED = "reasoning_stop_requested"
    """A post-reasoning hook stopped the loop. Pending tool calls stay resumable."""

    ACTING_STOP_REQUESTED = "acting_stop_requested"
    """A post-acting hook stopped the loop."""

    TOOL_SUSPENDED = "tool_suspended"
    """One or more tools are awaiting external completion."""

    MAX_ITERATIONS = "max_iterations"
    """The iteration budget ran out and the loop summarized."""

    INTERRUPTED = "interrupted"
    """Partial turn flushed to the log when streaming was interrupted."""


@_dataclasses.dataclass(frozen=True)
class TextBlock:
    """Plain text content."""

    type: _typing.ClassVar[str] = "text"

    text: str


@_dataclasses.dataclass(frozen=True)
class ReasoningBlock:
    """Chain-of-thought content produced by the model."""

    type: _typing.ClassVar[str] = "reasoning"

    reasoning: str


@_dataclasses.dataclass(frozen=True)
class ToolInvocation:
    """A tool call requested by the model."""

    type: _typing.ClassVar[str] = "tool_invocation"

    id: str
    name: str
    arguments: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    raw_arguments: str = ""
    """Argument text as streamed, kept when it could not be parsed."""

    def with_arguments(self, arguments: dict[str, _typing.Any]) -> ToolInvocation:
        """Return a copy carrying different arguments."""
        return _dataclasses.replace(self, arguments=dict(arguments))


@_dataclasses.dataclass(frozen=True)
class ToolOutcome:
    """The result of a tool invocation, matched to it by id."""

    type: _typing.ClassVar[str] = "tool_outcome"

    id: str
    name: str
    output: str
    is_error: bool = False
    suspended: bool = False
    """Left unresolved, awaiting external (human) completion."""

    def truncated(self, max_chars: int) -> ToolOutcome:
        """Return a copy whose output is cut to ``max_chars``."""
        if len(self.output) <= max_chars:
            return self
        return _dataclasses.replace(
            self,
            output=(
                self.output[:max_chars]
                + f"\n\n... [TRUNCATED: output exceeded {max_chars:,} characters] ..."
            ),
        )


ContentBlock = TextBlock | ReasoningBlock | ToolInvocation | ToolOutcome


def _new_turn_id() -> str:
    return _uuid.uuid4().hex


@_dataclasses.dataclass(frozen=True)
class Turn:
    """
    One immutable entry in the conversation log.

    Attributes:
        role: Who produced the turn.
        blocks: Ordered content blocks.
        name: Name of the producing agent or user, if any.
        reason: Generate reason, set on turns returned to callers.
        usage: Token usage of the model call that produced the turn.
        metadata: Free-form annotations (e.g. the hook that injected the turn).
        id: Unique turn id. Preserved by with_reason().
    """

    role: Role
    blocks: tuple[ContentBlock, ...] = ()
    name: str | None = None
    reason: GenerateReason | None = None
    usage: api_types.Usage | None = None
    metadata: dict[str, _typing.Any] = _dataclasses.field(default_factory=dict)
    id: str = _dataclasses.field(default_factory=_new_turn_id)

    def __post_init__(self) -> None:
        if not isinstance(self.blocks, tuple):
            object.__setattr__(self, "blocks", tuple(self.blocks))

    # === Constructors ===

    @classmethod
    def user(cls, text: str, *, name: str | None = None) -> Turn:
        return cls(role=Role.USER, blocks=(TextBlock(text),), name=name)

    @classmethod
    def system(cls, text: str) -> Turn:
        return cls(role=Role.SYSTEM, blocks=(TextBlock(text),), name="system")

    @classmethod
    def assistant_text(
        cls,
        text: str,
        *,
        name: str | None = None,
        reason: GenerateReason | None = None,
    ) -> Turn:
        return cls(role=Role.ASSISTANT, blocks=(TextBlock(text),), name=name, reason=reason)

    @classmethod
    def tool_result(
        cls,
        outcome: ToolOutcome,
        *,
        name: str | None = None,
        max_chars: int | None = _constants.DEFAULT_TOOL_RESULT_MAX_CHARS,
    ) -> Turn:
        """
        Build the tool turn carrying one outcome.

        Outputs longer than ``max_chars`` are truncated so runaway tool output
        cannot flood the context window. None keeps the output whole.
        """
        if max_chars is not None:
            outcome = outcome.truncated(max_chars)
        return cls(role=Role.TOOL, blocks=(outcome,), name=name)

    # === Accessors ===

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def reasoning(self) -> str:
        """Concatenated reasoning of all reasoning blocks."""
        return "".join(b.reasoning for b in self.blocks if isinstance(b, ReasoningBlock))

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [b for b in self.blocks if isinstance(b, ToolInvocation)]

    @property
    def tool_outcomes(self) -> list[ToolOutcome]:
        return [b for b in self.blocks if isinstance(b, ToolOutcome)]

    @property
    def has_tool_invocations(self) -> bool:
        return any(isinstance(b, ToolInvocation) for b in self.blocks)

    @property
    def is_empty(self) -> bool:
        return not self.blocks

    def with_reason(self, reason: GenerateReason) -> Turn:
        """Return the same turn (same id) tagged with a generate reason."""
        return _dataclasses.replace(self, reason=reason)

    # === Serialization (logging only) ===

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        result: dict[str, _typing.Any] = {
            "id": self.id,
            "role": self.role.value,
            "blocks": [block_to_dict(b) for b in self.blocks],
        }
        if self.name is not None:
            result["name"] = self.name
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.usage is not None:
            result["usage"] = self.usage.to_dict()
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Turn:
        """Create from dictionary produced by to_dict()."""
        reason = data.get("reason")
        usage = data.get("usage")
        return cls(
            role=Role(data["role"]),
            blocks=tuple(block_from_dict(b) for b in data.get("blocks", [])),
            name=data.get("name"),
            reason=GenerateReason(reason) if reason else None,
            usage=api_types.Usage.from_dict(usage) if usage else None,
            metadata=dict(data.get("metadata", {})),
            id=data.get("id") or _new_turn_id(),
        )


def block_to_dict(block: ContentBlock) -> dict[str, _typing.Any]:
    """Convert a content block to a JSON-serializable dict with a type tag."""
    data = _dataclasses.asdict(block)
    data["type"] = block.type
    return data


_BLOCK_TYPES: dict[str, type[ContentBlock]] = {
    TextBlock.type: TextBlock,
    ReasoningBlock.type: ReasoningBlock,
    ToolInvocation.type: ToolInvocation,
    ToolOutcome.type: ToolOutcome,
}


def block_from_dict(data: dict[str, _typing.Any]) -> ContentBlock:
    """Create a content block from a dict produced by block_to_dict()."""
    fields = dict(data)
    block_type = fields.pop("type", None)
    block_cls = _BLOCK_TYPES.get(block_type)  # type: ignore[arg-type]
    if block_cls is None:
        raise ValueError(f"Unknown content block type: {block_type!r}")
    return block_cls(**fields)
