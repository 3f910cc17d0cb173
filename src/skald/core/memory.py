"""
Message log: the append-only conversation history.

The log is the single source of truth for the agent loop. It is mutated only
by callers appending input, by the controller appending assistant and tool
turns, and by hooks appending their own turns.
"""

from __future__ import annotations

import abc as _abc
import typing as _typing

import skald.core.types as types


def check_appendable(turn: types.Turn) -> None:
    """
    Check that a turn may enter the log.

    Raises:
        TypeError: If ``turn`` is not a Turn.
        ValueError: If ``turn`` carries a suspended tool outcome.
    """
    if not isinstance(turn, types.Turn):
        raise TypeError(f"Message log only accepts Turn, got {type(turn).__name__}")
    if any(outcome.suspended for outcome in turn.tool_outcomes):
        raise ValueError("Suspended tool outcomes cannot be appended to the message log")


class MessageLog(_abc.ABC):
    """
    Abstract append-only sequence of turns.

    Implementations may back the log with anything (a list, a database, a
    remote store) as long as ``all()`` returns turns in append order.
    """

    @_abc.abstractmethod
    def all(self) -> list[types.Turn]:
        """Return all turns in append order (a copy the caller may keep)."""
        ...

    @_abc.abstractmethod
    def _append(self, turn: types.Turn) -> None:
        """Store one already-checked turn."""
        ...

    def append(self, turn: types.Turn) -> None:
        """
        Append a turn to the log.

        Raises:
            TypeError: If ``turn`` is not a Turn.
            ValueError: If ``turn`` carries a suspended tool outcome.
        """
        check_appendable(turn)
        self._append(turn)

    def extend(self, turns: _typing.Iterable[types.Turn]) -> None:
        """Append several turns in order. Nothing is appended if any turn is rejected."""
        turns = list(turns)
        for turn in turns:
            check_appendable(turn)
        for turn in turns:
            self._append(turn)

    def last(self, role: types.Role | None = None) -> types.Turn | None:
        """Return the most recent turn, optionally restricted to a role."""
        for turn in reversed(self.all()):
            if role is None or turn.role == role:
                return turn
        return None

    def __len__(self) -> int:
        return len(self.all())


class InMemoryMessageLog(MessageLog):
    """List-backed message log."""

    def __init__(self, turns: _typing.Iterable[types.Turn] = ()) -> None:
        self._turns: list[types.Turn] = []
        self.extend(turns)

    def all(self) -> list[types.Turn]:
        return list(self._turns)

    def _append(self, turn: types.Turn) -> None:
        self._turns.append(turn)

    def __len__(self) -> int:
        return len(self._turns)
