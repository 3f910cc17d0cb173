"""Tests for hooks/stuck.py."""

import pytest as _pytest

import skald.core.types as types
import skald.hooks.stuck as stuck


def _call(name: str = "search", **arguments: str) -> types.ToolInvocation:
    return types.ToolInvocation(id="t", name=name, arguments=arguments)


def _ok(name: str = "search") -> types.ToolOutcome:
    return types.ToolOutcome(id="t", name=name, output="ok")


def _error(message: str, name: str = "search") -> types.ToolOutcome:
    return types.ToolOutcome(id="t", name=name, output=message, is_error=True)


class TestStuckDetector:
    def test_not_stuck_initially(self) -> None:
        assert not stuck.StuckDetector().check().is_stuck

    def test_repeated_call_detected(self) -> None:
        detector = stuck.StuckDetector(repeat_threshold=3)
        for _ in range(2):
            detector.record(_call(q="x"), _ok())
        assert not detector.check().is_stuck

        detector.record(_call(q="x"), _ok())
        state = detector.check()
        assert state.is_stuck
        assert state.reason == "Same tool call repeated multiple times"
        assert state.suggestion is not None

    def test_varied_calls_not_stuck(self) -> None:
        detector = stuck.StuckDetector(repeat_threshold=2)
        detector.record(_call(q="a"), _ok())
        detector.record(_call(q="b"), _ok())
        assert not detector.check().is_stuck

    def test_argument_order_does_not_matter(self) -> None:
        detector = stuck.StuckDetector(repeat_threshold=2)
        detector.record(types.ToolInvocation(id="1", name="s", arguments={"a": 1, "b": 2}), _ok())
        detector.record(types.ToolInvocation(id="2", name="s", arguments={"b": 2, "a": 1}), _ok())
        assert detector.check().is_stuck

    def test_repeated_error_detected(self) -> None:
        detector = stuck.StuckDetector(repeat_threshold=5, error_repeat_threshold=2)
        detector.record(_call(q="a"), _error("permission denied"))
        detector.record(_call(q="b"), _error("permission denied"))
        state = detector.check()
        assert state.is_stuck
        assert state.reason == "Same error encountered multiple times"

    def test_success_clears_error_streak(self) -> None:
        detector = stuck.StuckDetector(repeat_threshold=5, error_repeat_threshold=2)
        detector.record(_call(q="a"), _error("boom"))
        detector.record(_call(q="b"), _ok())
        detector.record(_call(q="c"), _error("boom"))
        assert not detector.check().is_stuck

    def test_reset(self) -> None:
        detector = stuck.StuckDetector(repeat_threshold=2)
        detector.record(_call(q="x"), _ok())
        detector.record(_call(q="x"), _ok())
        detector.reset()
        assert not detector.check().is_stuck

    @_pytest.mark.parametrize("kwargs", [{"repeat_threshold": 1}, {"error_repeat_threshold": 0}])
    def test_thresholds_validated(self, kwargs: dict[str, int]) -> None:
        with _pytest.raises(ValueError, match="at least 2"):
            stuck.StuckDetector(**kwargs)
