"""Log structure validators for conversation integrity.

This module checks that a message log satisfies the structural invariants
the agent loop relies on. These validators should be used:
1. In tests to catch log construction bugs
2. Optionally at runtime (``validate_messages=True`` on the controller) to
   fail fast before a malformed prompt reaches the model

The validators check for:
- Blocks in turns whose role cannot carry them
- Duplicate tool invocation or outcome ids
- Outcomes without a preceding invocation
- Suspended outcomes that leaked into the log
"""

from __future__ import annotations

import typing as _typing

import skald.core.errors as errors
import skald.core.types as types

LogValidationError = errors.LogValidationError


def validate_log(
    turns: _typing.Sequence[types.Turn],
    *,
    strict: bool = True,
) -> list[str]:
    """Validate all log structure invariants.

    Args:
        turns: The message log, in order.
        strict: If True, raise LogValidationError on first violation.
                If False, collect and return all violations as strings.

    Returns:
        List of violation descriptions (empty if valid).

    Raises:
        LogValidationError: If strict=True and any violation found.
    """
    violations: list[str] = []

    validators = [
        _validate_blocks_per_role,
        _validate_unique_invocation_ids,
        _validate_outcome_ids,
        _validate_no_suspended_outcomes,
    ]

    for validator in validators:
        try:
            validator(turns)
        except errors.LogValidationError as e:
            if strict:
                raise
            violations.append(f"[{e.violation_type}] {e}")

    return violations


def _validate_blocks_per_role(turns: _typing.Sequence[types.Turn]) -> None:
    """Validate every block is allowed for its turn's role.

    Rules:
    - Tool invocations only in assistant turns
    - Tool outcomes only in tool turns, or user turns resuming pending calls
    - Reasoning only in assistant turns
    """
    for i, turn in enumerate(turns):
        for block in turn.blocks:
            if isinstance(block, types.ToolInvocation) and turn.role != types.Role.ASSISTANT:
                raise errors.LogValidationError(
                    f"Turn {i} ({turn.role.value}) carries a tool invocation",
                    violation_type="invocation_outside_assistant",
                    context={"index": i, "tool_id": block.id},
                )
            if isinstance(block, types.ToolOutcome) and turn.role not in (
                types.Role.TOOL,
                types.Role.USER,
            ):
                raise errors.LogValidationError(
                    f"Turn {i} ({turn.role.value}) carries a tool outcome",
                    violation_type="outcome_outside_tool",
                    context={"index": i, "tool_id": block.id},
                )
            if isinstance(block, types.ReasoningBlock) and turn.role != types.Role.ASSISTANT:
                raise errors.LogValidationError(
                    f"Turn {i} ({turn.role.value}) carries reasoning",
                    violation_type="reasoning_outside_assistant",
                    context={"index": i},
                )


def _validate_unique_invocation_ids(turns: _typing.Sequence[types.Turn]) -> None:
    seen: dict[str, int] = {}
    for i, turn in enumerate(turns):
        for invocation in turn.tool_invocations:
            if invocation.id in seen:
                raise errors.LogValidationError(
                    f"Tool invocation id {invocation.id!r} at turn {i} "
                    f"already used at turn {seen[invocation.id]}",
                    violation_type="duplicate_invocation_id",
                    context={"indices": [seen[invocation.id], i], "tool_id": invocation.id},
                )
            seen[invocation.id] = i


def _validate_outcome_ids(turns: _typing.Sequence[types.Turn]) -> None:
    """Validate each outcome answers exactly one earlier invocation.

    Rules:
    - An outcome must reference an invocation from a preceding assistant turn
    - An invocation is answered at most once

    Invocations without an outcome are not an error: the conversation may be
    waiting on them.
    """
    invoked: set[str] = set()
    answered: dict[str, int] = {}

    for i, turn in enumerate(turns):
        if turn.role == types.Role.ASSISTANT:
            invoked.update(inv.id for inv in turn.tool_invocations)
        for outcome in turn.tool_outcomes:
            if outcome.id not in invoked:
                raise errors.LogValidationError(
                    f"Tool outcome at turn {i} has orphan id: {outcome.id!r}",
                    violation_type="orphan_outcome",
                    context={"index": i, "tool_id": outcome.id},
                )
            if outcome.id in answered:
                raise errors.LogValidationError(
                    f"Tool outcome id {outcome.id!r} at turn {i} "
                    f"already answered at turn {answered[outcome.id]}",
                    violation_type="duplicate_outcome_id",
                    context={"indices": [answered[outcome.id], i], "tool_id": outcome.id},
                )
            answered[outcome.id] = i


def _validate_no_suspended_outcomes(turns: _typing.Sequence[types.Turn]) -> None:
    for i, turn in enumerate(turns):
        for outcome in turn.tool_outcomes:
            if outcome.suspended:
                raise errors.LogValidationError(
                    f"Suspended tool outcome {outcome.id!r} found in log at turn {i}",
                    violation_type="suspended_outcome_in_log",
                    context={"index": i, "tool_id": outcome.id},
                )
