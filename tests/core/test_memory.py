"""Tests for core/memory.py."""

import pytest as _pytest

import skald.core.memory as memory
import skald.core.types as types


class TestInMemoryMessageLog:
    def test_append_preserves_order(self) -> None:
        log = memory.InMemoryMessageLog()
        first = types.Turn.user("one")
        second = types.Turn.assistant_text("two")
        log.append(first)
        log.append(second)
        assert log.all() == [first, second]
        assert len(log) == 2

    def test_all_returns_a_copy(self) -> None:
        log = memory.InMemoryMessageLog([types.Turn.user("one")])
        snapshot = log.all()
        snapshot.append(types.Turn.user("two"))
        assert len(log) == 1

    def test_rejects_non_turn(self) -> None:
        log = memory.InMemoryMessageLog()
        with _pytest.raises(TypeError):
            log.append("hello")  # type: ignore[arg-type]

    def test_rejects_suspended_outcome(self) -> None:
        log = memory.InMemoryMessageLog()
        outcome = types.ToolOutcome(id="t1", name="ask", output="wait", suspended=True)
        with _pytest.raises(ValueError, match="Suspended"):
            log.append(types.Turn.tool_result(outcome))
        assert len(log) == 0

    def test_last_by_role(self) -> None:
        user = types.Turn.user("q")
        assistant = types.Turn.assistant_text("a")
        log = memory.InMemoryMessageLog([user, assistant])
        assert log.last() is assistant
        assert log.last(types.Role.USER) is user
        assert log.last(types.Role.TOOL) is None

    def test_extend_is_all_or_nothing(self) -> None:
        log = memory.InMemoryMessageLog([types.Turn.user("first")])
        outcome = types.ToolOutcome(id="t1", name="ask", output="wait", suspended=True)
        with _pytest.raises(ValueError, match="Suspended"):
            log.extend([types.Turn.user("a"), types.Turn.tool_result(outcome)])
        assert [turn.text for turn in log.all()] == ["first"]

    def test_check_appendable(self) -> None:
        memory.check_appendable(types.Turn.user("ok"))
        with _pytest.raises(TypeError):
            memory.check_appendable(object())  # type: ignore[arg-type]
