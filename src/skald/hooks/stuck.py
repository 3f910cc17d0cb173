"""
Stuck detection for the acting phase.

Detects when the agent keeps repeating the same tool call, or keeps hitting
the same tool error, and produces a corrective note the loop can show the
model.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import hashlib as _hashlib
import json as _json
import typing as _typing

import skald.core.types as types


@_dataclasses.dataclass
class StuckState:
    """Result of stuck detection check."""

    is_stuck: bool
    """Whether the agent appears to be stuck."""

    reason: str | None = None
    """Human-readable explanation of why stuck was detected."""

    suggestion: str | None = None
    """Note to show the model to help it get unstuck."""


class StuckDetector:
    """
    Detects when the agent is stuck in a repetitive loop.

    Detection patterns:
    1. Same invocation (name and arguments) completed N times in a row
    2. Same tool error repeated N times in a row
    """

    def __init__(
        self,
        *,
        repeat_threshold: int = 3,
        error_repeat_threshold: int = 3,
    ) -> None:
        """
        Initialize the stuck detector.

        Args:
            repeat_threshold: Number of identical tool calls to trigger stuck.
            error_repeat_threshold: Number of identical errors to trigger stuck.
        """
        if repeat_threshold < 2 or error_repeat_threshold < 2:
            raise ValueError("stuck thresholds must be at least 2")
        self._repeat_threshold = repeat_threshold
        self._error_repeat_threshold = error_repeat_threshold
        self._recent_calls: list[str] = []
        self._recent_errors: list[str] = []

    def record(self, invocation: types.ToolInvocation, outcome: types.ToolOutcome) -> None:
        """Record one completed tool call."""
        self._recent_calls.append(_digest({"tool": invocation.name, "input": invocation.arguments}))
        self._recent_calls = self._recent_calls[-self._repeat_threshold * 2 :]

        if outcome.is_error:
            self._recent_errors.append(_digest({"tool": invocation.name, "error": outcome.output}))
            self._recent_errors = self._recent_errors[-self._error_repeat_threshold * 2 :]
        else:
            self._recent_errors.clear()

    def check(self) -> StuckState:
        """Check if the agent appears to be stuck."""
        if _all_same(self._recent_calls, self._repeat_threshold):
            return StuckState(
                is_stuck=True,
                reason="Same tool call repeated multiple times",
                suggestion=(
                    "You appear to be repeating the same action. This approach isn't "
                    "working. Please try a different approach."
                ),
            )

        if _all_same(self._recent_errors, self._error_repeat_threshold):
            return StuckState(
                is_stuck=True,
                reason="Same error encountered multiple times",
                suggestion=(
                    "You're encountering the same error repeatedly. Please analyze why "
                    "this error is occurring and try a different approach."
                ),
            )

        return StuckState(is_stuck=False)

    def reset(self) -> None:
        """Reset all tracking state."""
        self._recent_calls.clear()
        self._recent_errors.clear()


def _digest(data: dict[str, _typing.Any]) -> str:
    json_str = _json.dumps(data, sort_keys=True, default=str)
    return _hashlib.sha256(json_str.encode()).hexdigest()[:16]


def _all_same(history: list[str], threshold: int) -> bool:
    if len(history) < threshold:
        return False
    return len(set(history[-threshold:])) == 1
