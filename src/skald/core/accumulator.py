"""
Streaming accumulator for one model turn.

Merges the stream of partial response fragments into growing content blocks
(reasoning, text, tool invocations). After every fragment the caller can
obtain the materialized-so-far view for chunk hooks; once the stream ends,
build() returns the final immutable assistant turn.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import logging as _logging
import typing as _typing

import skald.api.types as api_types
import skald.constants as _constants
import skald.core.types as types

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class _ToolCallBuffer:
    """Argument fragments collected for one tool call id."""

    id: str
    name: str = ""
    raw_parts: list[str] = _dataclasses.field(default_factory=list)
    complete_arguments: dict[str, _typing.Any] | None = None

    def merge(self, event: api_types.StreamEvent) -> None:
        if event.arguments_delta:
            self.raw_parts.append(event.arguments_delta)
        if event.arguments is not None:
            self.complete_arguments = dict(event.arguments)

    @property
    def raw_arguments(self) -> str:
        return "".join(self.raw_parts)

    def parsed_arguments(self) -> dict[str, _typing.Any]:
        """Arguments parsed from the raw text, or {} while still incomplete."""
        if self.complete_arguments is not None:
            return dict(self.complete_arguments)
        raw = self.raw_arguments.strip()
        if not raw:
            return {}
        try:
            value = _json.loads(raw)
        except ValueError:
            return {}
        return value if isinstance(value, dict) else {}

    def to_invocation(self) -> types.ToolInvocation:
        return types.ToolInvocation(
            id=self.id,
            name=self.name,
            arguments=self.parsed_arguments(),
            raw_arguments=self.raw_arguments,
        )


class StreamAccumulator:
    """
    Accumulates one streamed model turn into content blocks.

    Text and reasoning deltas are concatenated in arrival order. Tool call
    fragments are merged by id: the first fragment of a call carries its id
    and name, later ones may carry only an argument continuation. Fragments
    without an id (or with the placeholder name ``__fragment__``) are
    unattributed continuations: they join the most recently opened call, or
    wait until a call with an id opens.

    Construct a fresh accumulator per model turn.
    """

    def __init__(self, *, name: str | None = None) -> None:
        """
        Initialize the accumulator.

        Args:
            name: Agent name stamped on the turns this accumulator builds.
        """
        self._name = name
        self._reasoning_parts: list[str] = []
        self._text_parts: list[str] = []
        self._calls: dict[str, _ToolCallBuffer] = {}
        self._last_call_id: str | None = None
        self._unattributed: list[api_types.StreamEvent] = []
        self._fragment_count = 0
        self.usage: api_types.Usage | None = None
        self.stop_reason: str | None = None
        self.last_delta: types.Turn | None = None
        """Content contributed by the most recent fragment alone."""

    @property
    def fragment_count(self) -> int:
        """Number of fragments ingested so far (including the stop marker)."""
        return self._fragment_count

    @property
    def accumulated_text(self) -> str:
        return "".join(self._text_parts)

    @property
    def accumulated_reasoning(self) -> str:
        return "".join(self._reasoning_parts)

    def ingest(self, event: api_types.StreamEvent) -> types.Turn | None:
        """
        Merge one fragment.

        Args:
            event: The next stream fragment.

        Returns:
            The materialized-so-far turn, or None when the fragment added no
            content (for example the end-of-stream marker).
        """
        self._fragment_count += 1
        self.last_delta = None

        if event.type == "thinking_delta":
            if not event.thinking:
                return None
            self._reasoning_parts.append(event.thinking)
            self.last_delta = self._delta_turn(types.ReasoningBlock(event.thinking))
        elif event.type == "text_delta":
            if not event.text:
                return None
            self._text_parts.append(event.text)
            self.last_delta = self._delta_turn(types.TextBlock(event.text))
        elif event.type == "tool_call_delta":
            if not self._ingest_tool_fragment(event):
                return None
            buffer = self._calls[self._last_call_id]  # type: ignore[index]
            if buffer.name:
                self.last_delta = self._delta_turn(
                    types.ToolInvocation(
                        id=buffer.id,
                        name=buffer.name,
                        arguments=dict(event.arguments or {}),
                        raw_arguments=event.arguments_delta or "",
                    )
                )
        elif event.type == "message_stop":
            if event.usage is not None:
                self.usage = event.usage
            if event.stop_reason is not None:
                self.stop_reason = event.stop_reason
            return None
        else:
            _logger.debug("Ignoring unknown stream event type: %s", event.type)
            return None

        return self.snapshot()

    def _ingest_tool_fragment(self, event: api_types.StreamEvent) -> bool:
        """Merge a tool call fragment. Returns False if it is still unattributed."""
        name = event.tool_name
        if name == _constants.FRAGMENT_TOOL_NAME:
            name = None

        call_id = event.tool_call_id or self._last_call_id
        if call_id is None:
            # Continuation before any call opened; hold it
            self._unattributed.append(event)
            return False

        buffer = self._calls.get(call_id)
        if buffer is None:
            buffer = _ToolCallBuffer(id=call_id, name=name or "")
            self._calls[call_id] = buffer
            buffer.merge(event)
            for held in self._unattributed:
                buffer.merge(held)
            self._unattributed.clear()
        else:
            if name and not buffer.name:
                buffer.name = name
            buffer.merge(event)

        self._last_call_id = call_id
        return True

    def _delta_turn(self, block: types.ContentBlock) -> types.Turn:
        return types.Turn(role=types.Role.ASSISTANT, blocks=(block,), name=self._name)

    def _blocks(self) -> list[types.ContentBlock]:
        blocks: list[types.ContentBlock] = []
        reasoning = self.accumulated_reasoning
        if reasoning:
            blocks.append(types.ReasoningBlock(reasoning))
        text = self.accumulated_text
        if text:
            blocks.append(types.TextBlock(text))
        for buffer in self._calls.values():
            if not buffer.name:
                continue
            blocks.append(buffer.to_invocation())
        return blocks

    def snapshot(self) -> types.Turn | None:
        """Return the materialized-so-far turn, or None if nothing accumulated."""
        blocks = self._blocks()
        if not blocks:
            return None
        return types.Turn(role=types.Role.ASSISTANT, blocks=tuple(blocks), name=self._name)

    def build(self) -> types.Turn | None:
        """
        Build the final assistant turn.

        Tool calls that never received a name are dropped: they cannot be
        executed or answered.

        Returns:
            The final turn, or None when the stream produced no content.
        """
        dropped = [b.id for b in self._calls.values() if not b.name]
        if dropped:
            _logger.warning("Dropping tool calls without a name: %s", ", ".join(dropped))
        if self._unattributed:
            _logger.warning(
                "Dropping %d tool call fragment(s) with no call to attach to",
                len(self._unattributed),
            )

        blocks = self._blocks()
        if not blocks:
            return None
        return types.Turn(
            role=types.Role.ASSISTANT,
            blocks=tuple(blocks),
            name=self._name,
            usage=self.usage,
        )
