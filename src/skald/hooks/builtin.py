"""
Built-in hooks.

Ready-made hooks for common loop policies. Each one can be added to a
HookPipeline directly or declared in hooks.yaml by its import path, e.g.
``skald.hooks.builtin:StopOnToolHook``.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import skald.constants as _constants
import skald.core.types as types
import skald.hooks.events as events
import skald.hooks.stuck as stuck
import skald.logging.conversation_logger as conversation_logger

_logger = _logging.getLogger(__name__)

DEFAULT_TOOL_REMINDER = (
    "Your previous response did not call any tool. "
    "Respond by calling one of the available tools."
)


class PhaseHook:
    """
    Base class routing events to ``on_<phase>`` methods.

    Subclasses implement only the phases they care about; every other event
    passes through untouched.
    """

    name: str = ""
    priority: int = _constants.DEFAULT_HOOK_PRIORITY

    def __init__(self, *, priority: int | None = None) -> None:
        if priority is not None:
            self.priority = priority
        if not self.name:
            self.name = type(self).__name__

    async def on_event(self, event: events.HookEvent) -> events.HookEvent | None:
        handler = getattr(self, f"on_{event.phase.value}", None)
        if handler is None:
            return None
        return await handler(event)  # type: ignore[no-any-return]

    def _reminder_turn(self, text: str) -> types.Turn:
        return types.Turn(
            role=types.Role.USER,
            blocks=(types.TextBlock(text),),
            metadata={"hook": self.name},
        )


class RequireToolCallHook(PhaseHook):
    """
    Re-run reasoning until the model calls a tool.

    When a response carries no tool invocation, the hook asks the loop to
    reason again with a reminder. After ``max_retries`` consecutive misses
    the response is let through.
    """

    def __init__(
        self,
        *,
        max_retries: int = 3,
        reminder: str = DEFAULT_TOOL_REMINDER,
        priority: int | None = None,
    ) -> None:
        super().__init__(priority=priority)
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._max_retries = max_retries
        self._reminder = reminder
        self._retries = 0

    @property
    def retries(self) -> int:
        return self._retries

    async def on_post_reasoning(self, event: events.PostReasoningEvent) -> None:
        if event.stop_requested or event.goto_reasoning_requested:
            return
        if event.turn is not None and event.turn.has_tool_invocations:
            self._retries = 0
            return
        if self._retries >= self._max_retries:
            _logger.warning(
                "Model did not call a tool after %d reminder(s); accepting response",
                self._retries,
            )
            self._retries = 0
            return

        self._retries += 1
        event.goto_reasoning(self._reminder_turn(self._reminder))


class StopOnToolHook(PhaseHook):
    """Stop the loop once one of the named tools completes without error."""

    def __init__(
        self,
        tool_names: _typing.Iterable[str] = ("finish",),
        *,
        priority: int | None = None,
    ) -> None:
        super().__init__(priority=priority)
        self._tool_names = frozenset(tool_names)

    async def on_post_acting(self, event: events.PostActingEvent) -> None:
        if event.invocation.name in self._tool_names and not event.outcome.is_error:
            event.stop_agent()


class ApprovalHook(PhaseHook):
    """
    Stop before running tools that need a human's approval.

    The response is kept and its tool calls stay pending. The caller
    resumes with empty input to run them as requested, or with tool
    outcomes of its own (e.g. a rejection) to answer them instead.
    """

    def __init__(
        self,
        tool_names: _typing.Iterable[str],
        *,
        priority: int | None = None,
    ) -> None:
        super().__init__(priority=priority)
        self._tool_names = frozenset(tool_names)

    async def on_post_reasoning(self, event: events.PostReasoningEvent) -> None:
        if event.turn is None or event.goto_reasoning_requested:
            return
        needs_approval = [
            inv.name for inv in event.turn.tool_invocations if inv.name in self._tool_names
        ]
        if needs_approval:
            _logger.debug("Awaiting approval for: %s", ", ".join(needs_approval))
            event.stop_agent()


class StuckDetectionHook(PhaseHook):
    """
    Append a corrective note to tool outcomes when the agent is looping.

    Repeating the same invocation, or hitting the same error, N times in a
    row adds a note to the latest outcome telling the model to change course.
    """

    def __init__(
        self,
        *,
        repeat_threshold: int = 3,
        error_repeat_threshold: int = 3,
        priority: int | None = None,
    ) -> None:
        super().__init__(priority=priority)
        self._detector = stuck.StuckDetector(
            repeat_threshold=repeat_threshold,
            error_repeat_threshold=error_repeat_threshold,
        )

    async def on_post_acting(self, event: events.PostActingEvent) -> None:
        self._detector.record(event.invocation, event.outcome)
        state = self._detector.check()
        if not state.is_stuck:
            return

        _logger.info("Stuck detected: %s", state.reason)
        event.outcome = _dataclasses.replace(
            event.outcome,
            output=f"{event.outcome.output}\n\n[Note: {state.suggestion}]",
        )
        self._detector.reset()


class LoggingHook(PhaseHook):
    """
    Record every hook phase to a ConversationLogger.

    Chunk phases are skipped unless ``log_chunks`` is set; they fire once
    per streamed fragment.
    """

    priority = 1000

    def __init__(
        self,
        logger: conversation_logger.ConversationLogger | None = None,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_chunks: bool = False,
        priority: int | None = None,
    ) -> None:
        super().__init__(priority=priority)
        self._logger = logger or conversation_logger.ConversationLogger(log_dir=log_dir)
        self._log_chunks = log_chunks

    @property
    def logger(self) -> conversation_logger.ConversationLogger:
        return self._logger

    async def on_event(self, event: events.HookEvent) -> events.HookEvent | None:
        if event.phase.is_chunk and not self._log_chunks:
            return None
        self._logger.log_hook(event.phase.value, event.to_dict())
        return None
