"""
Log reader for conversation logs written by ConversationLogger.

Reads a JSONL log back into its events and the turns it recorded, so a
session can be inspected (or replayed into a fresh message log) afterwards.
"""

from __future__ import annotations

import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import skald.core.types as types

_logger = _logging.getLogger(__name__)


class LogReader:
    """
    Reader for conversation log files.

    Usage:
        reader = LogReader("skald_20250101_120000.jsonl")
        for turn in reader.get_turns():
            print(turn.role.value, turn.text)
    """

    def __init__(self, log_path: _pathlib.Path | str) -> None:
        """
        Initialize the log reader.

        Args:
            log_path: Path to the JSONL log file.
        """
        self._log_path = _pathlib.Path(log_path)
        self._events: list[dict[str, _typing.Any]] | None = None

    @property
    def path(self) -> _pathlib.Path:
        return self._log_path

    def _ensure_loaded(self) -> list[dict[str, _typing.Any]]:
        """Load events if not already loaded."""
        if self._events is None:
            events: list[dict[str, _typing.Any]] = []
            with open(self._log_path, encoding="utf-8") as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        events.append(_json.loads(line))
                    except _json.JSONDecodeError:
                        # A crash can leave a truncated last line
                        _logger.warning(
                            "Skipping malformed line %d in %s", line_number, self._log_path
                        )
            self._events = events
        return self._events

    def get_events(self, event_type: str | None = None) -> list[dict[str, _typing.Any]]:
        """Get all events from the log, optionally of one type."""
        events = self._ensure_loaded()
        if event_type is None:
            return list(events)
        return [e for e in events if e.get("event_type") == event_type]

    def get_turns(self) -> list[types.Turn]:
        """Rebuild the turns recorded by ``turn`` events, in log order."""
        return [
            types.Turn.from_dict(event["turn"])
            for event in self.get_events("turn")
            if "turn" in event
        ]

    def get_system_prompt(self) -> str | None:
        for event in self.get_events("system_prompt"):
            return _typing.cast(str, event.get("content", ""))
        return None

    def get_session_info(self) -> dict[str, _typing.Any]:
        """
        Get session metadata from the log.

        Returns:
            Dict with session info (agent, provider, model, start time, etc.).
        """
        events = self._ensure_loaded()
        info: dict[str, _typing.Any] = {}

        for event in events:
            if event.get("event_type") == "session_start":
                info["session_id"] = event.get("session_id")
                info["agent_name"] = event.get("agent_name")
                info["provider"] = event.get("provider")
                info["model"] = event.get("model")
                info["start_time"] = event.get("timestamp")
                break

        for event in reversed(events):
            if event.get("event_type") == "session_end":
                info["total_events"] = event.get("total_events")
                info["end_time"] = event.get("timestamp")
                break

        return info

    def get_usage_totals(self) -> dict[str, int]:
        """Sum the token usage of every model call in the log."""
        totals = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
        for event in self.get_events("usage"):
            for key in totals:
                totals[key] += int(event.get(key, 0) or 0)
        return totals
