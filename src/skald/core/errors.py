"""
Exception types raised by the agent loop.

The loop distinguishes six failure families:
- Validation errors: malformed resumption input. Raised before the log changes.
- Interruption: a cooperative cancellation, raised after partial progress is
  flushed to the log.
- Tool failures: never raised; they travel as error outcomes.
- Summary failures: absorbed into an apology turn.
- Hook failures: raised, aborting the current phase.
- Structured output: raised when the loop ends without a valid response.
"""

from __future__ import annotations

import typing as _typing

if _typing.TYPE_CHECKING:
    import skald.core.types as types


class SkaldError(Exception):
    """Base class for all errors raised by Skald."""


class ResumptionError(SkaldError, ValueError):
    """Raised when input supplied to resume pending tool calls is malformed.

    Attributes:
        reason: Short machine-readable violation name (e.g. "duplicate_outcome").
        ids: The tool-call ids involved, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        ids: _typing.Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.ids = sorted(ids)


class AgentInterrupted(SkaldError):
    """Raised when the loop honors an interrupt request.

    The partial turn accumulated before the interrupt (if any) has already
    been appended to the message log when this is raised. When that turn
    carried tool calls, ``recovery_turn`` is the assistant turn appended
    after it so the calls are no longer pending.
    """

    def __init__(
        self,
        message: str = "Agent execution interrupted",
        *,
        partial_turn: types.Turn | None = None,
        recovery_turn: types.Turn | None = None,
    ) -> None:
        super().__init__(message)
        self.partial_turn = partial_turn
        self.recovery_turn = recovery_turn


class HookError(SkaldError):
    """Raised when a hook fails while handling an event."""

    def __init__(self, hook_name: str, phase: str, cause: BaseException) -> None:
        super().__init__(f"Hook {hook_name} failed during {phase}: {cause}")
        self.hook_name = hook_name
        self.phase = phase
        self.cause = cause


class HookLoadError(SkaldError):
    """Raised when a configured hook cannot be imported or instantiated."""


class LogValidationError(SkaldError):
    """Raised when the message log violates a structural invariant."""

    def __init__(
        self,
        message: str,
        *,
        violation_type: str,
        context: dict[str, _typing.Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.violation_type = violation_type
        self.context = context or {}


class StructuredOutputError(SkaldError):
    """Raised when a structured-output call ends without a valid response."""
