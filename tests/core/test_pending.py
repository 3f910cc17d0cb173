"""Tests for core/pending.py."""

import pytest as _pytest

import skald.core.errors as errors
import skald.core.pending as pending
import skald.core.types as types


def _calls(*ids: str) -> types.Turn:
    return types.Turn(
        role=types.Role.ASSISTANT,
        blocks=tuple(types.ToolInvocation(id=i, name="echo") for i in ids),
    )


def _outcome(call_id: str, *, suspended: bool = False) -> types.ToolOutcome:
    return types.ToolOutcome(id=call_id, name="echo", output="ok", suspended=suspended)


def _answer(*ids: str) -> types.Turn:
    return types.Turn(role=types.Role.USER, blocks=tuple(_outcome(i) for i in ids))


class TestPendingIds:
    def test_empty_log(self) -> None:
        assert pending.pending_ids([]) == set()

    def test_no_assistant_turn(self) -> None:
        assert pending.pending_ids([types.Turn.user("hi")]) == set()

    def test_assistant_without_invocations(self) -> None:
        log = [types.Turn.user("hi"), types.Turn.assistant_text("hello")]
        assert pending.pending_ids(log) == set()

    def test_unanswered_invocations_are_pending(self) -> None:
        log = [types.Turn.user("go"), _calls("t1", "t2")]
        assert pending.pending_ids(log) == {"t1", "t2"}

    def test_later_outcomes_resolve(self) -> None:
        log = [_calls("t1", "t2"), types.Turn.tool_result(_outcome("t1"))]
        assert pending.pending_ids(log) == {"t2"}

    def test_only_latest_assistant_turn_counts(self) -> None:
        log = [_calls("old"), _calls("t1")]
        assert pending.pending_ids(log) == {"t1"}

    def test_pending_invocations_keep_order(self) -> None:
        log = [_calls("b", "a", "c"), types.Turn.tool_result(_outcome("a"))]
        assert [inv.id for inv in pending.pending_invocations(log)] == ["b", "c"]


class TestValidateResumption:
    def test_full_resumption_accepted(self) -> None:
        pending.validate_resumption([_answer("t1", "t2")], {"t1", "t2"})

    def test_partial_resumption_with_only_outcomes_accepted(self) -> None:
        pending.validate_resumption([_answer("t1")], {"t1", "t2"})

    def test_full_resumption_may_carry_text(self) -> None:
        turn = types.Turn(
            role=types.Role.USER,
            blocks=(_outcome("t1"), types.TextBlock("and also...")),
        )
        pending.validate_resumption([turn], {"t1"})

    @_pytest.mark.parametrize(
        ("turns", "reason"),
        [
            ([types.Turn.user("hello")], "no_outcomes"),
            ([_answer("t1"), _answer("t1")], "duplicate_outcome"),
            ([_answer("t1", "zzz")], "unknown_outcome"),
            (
                [types.Turn(role=types.Role.USER, blocks=(_outcome("t1", suspended=True),))],
                "suspended_outcome",
            ),
            ([_answer("t1"), types.Turn.user("and more")], "ambiguous_partial"),
        ],
    )
    def test_rejections(self, turns: list[types.Turn], reason: str) -> None:
        with _pytest.raises(errors.ResumptionError) as exc_info:
            pending.validate_resumption(turns, {"t1", "t2"})
        assert exc_info.value.reason == reason

    def test_resumption_error_is_value_error(self) -> None:
        with _pytest.raises(ValueError):
            pending.validate_resumption([], {"t1"})
