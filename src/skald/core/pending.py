"""
Pending tool call resolution.

A tool invocation is pending when it belongs to the most recent assistant
turn and no outcome for its id appears later in the log. The pending set is
derived from the log on every call and never cached, so it is always
consistent with what has actually been appended.
"""

from __future__ import annotations

import collections as _collections
import typing as _typing

import skald.core.errors as errors
import skald.core.types as types


def _latest_assistant_index(turns: _typing.Sequence[types.Turn]) -> int | None:
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].role == types.Role.ASSISTANT:
            return index
    return None


def pending_invocations(turns: _typing.Sequence[types.Turn]) -> list[types.ToolInvocation]:
    """
    Return the unresolved tool invocations of the latest assistant turn.

    Args:
        turns: The full message log, in order.

    Returns:
        Invocations without a later outcome, in invocation order. Empty when
        there is no assistant turn or it requested no tools.
    """
    index = _latest_assistant_index(turns)
    if index is None:
        return []

    invocations = turns[index].tool_invocations
    if not invocations:
        return []

    resolved = {
        outcome.id
        for turn in turns[index + 1 :]
        for outcome in turn.tool_outcomes
    }
    return [inv for inv in invocations if inv.id not in resolved]


def pending_ids(turns: _typing.Sequence[types.Turn]) -> set[str]:
    """Return the ids of the unresolved tool invocations of the latest assistant turn."""
    return {inv.id for inv in pending_invocations(turns)}


def validate_resumption(
    candidate_turns: _typing.Sequence[types.Turn],
    pending: _typing.AbstractSet[str],
) -> None:
    """
    Validate turns supplied to resume pending tool calls.

    Rules:
    - At least one tool outcome must be supplied.
    - No outcome id may appear twice.
    - Every outcome id must be pending.
    - Outcomes may not be suspended (suspensions never enter the log).
    - A partial resumption (a strict subset of the pending ids) may not be
      mixed with any other content: free text next to some but not all
      outcomes is ambiguous.

    Args:
        candidate_turns: Turns the caller wants to append.
        pending: The pending ids computed before accepting the input.

    Raises:
        ResumptionError: If any rule is violated. The log is not touched.
    """
    outcomes = [outcome for turn in candidate_turns for outcome in turn.tool_outcomes]
    if not outcomes:
        raise errors.ResumptionError(
            "Pending tool calls must be resolved before new input: "
            f"supply outcomes for {', '.join(sorted(pending))}",
            reason="no_outcomes",
            ids=pending,
        )

    counts = _collections.Counter(outcome.id for outcome in outcomes)
    duplicates = {call_id for call_id, count in counts.items() if count > 1}
    if duplicates:
        raise errors.ResumptionError(
            f"Duplicate tool outcomes for: {', '.join(sorted(duplicates))}",
            reason="duplicate_outcome",
            ids=duplicates,
        )

    supplied = set(counts)
    unknown = supplied - set(pending)
    if unknown:
        raise errors.ResumptionError(
            f"Tool outcomes do not match any pending call: {', '.join(sorted(unknown))}",
            reason="unknown_outcome",
            ids=unknown,
        )

    suspended = {outcome.id for outcome in outcomes if outcome.suspended}
    if suspended:
        raise errors.ResumptionError(
            f"Suspended outcomes cannot resume a call: {', '.join(sorted(suspended))}",
            reason="suspended_outcome",
            ids=suspended,
        )

    if supplied < set(pending):
        has_other_content = any(
            not isinstance(block, types.ToolOutcome)
            for turn in candidate_turns
            for block in turn.blocks
        )
        if has_other_content:
            raise errors.ResumptionError(
                "Partial tool resumption cannot be mixed with other content; "
                f"still pending: {', '.join(sorted(set(pending) - supplied))}",
                reason="ambiguous_partial",
                ids=set(pending) - supplied,
            )
