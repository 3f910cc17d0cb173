"""
Conversation logger for Skald.

Logs the agent loop to JSONL files for debugging and analysis.
"""

from __future__ import annotations

import datetime as _datetime
import json as _json
import os as _os
import pathlib as _pathlib
import typing as _typing

import skald.api.types as api_types
import skald.core.types as types

DEFAULT_LOG_DIR = _pathlib.Path("/tmp/skald-logs")


class ConversationLogger:
    """
    Logs agent loop events to a JSONL file.

    Each line in the file is a JSON object representing an event:
    - session_start: Session metadata (agent, provider, model)
    - system_prompt: The system prompt sent to the model
    - turn: A turn appended to the message log
    - tool_call: Tool invocation about to be executed
    - tool_result: Outcome of a tool invocation
    - hook: A hook phase (written by LoggingHook)
    - interrupted: The loop honored an interrupt
    - summary: The iteration budget ran out and the loop summarized
    - usage: Token usage of one model call
    - error: Error events
    - session_end: Session completion

    Usage:
        logger = ConversationLogger(log_dir="/tmp", agent_name="assistant")
        logger.log_system_prompt("You are a helpful assistant.")
        logger.log_turn(types.Turn.user("Hello"))
        logger.close()
    """

    def __init__(
        self,
        *,
        log_dir: _pathlib.Path | str | None = None,
        log_file: _pathlib.Path | str | None = None,
        private_mode: bool = True,
        agent_name: str = "unknown",
        provider: str = "unknown",
        model: str = "unknown",
        enabled: bool = True,
    ) -> None:
        """
        Initialize the conversation logger.

        Args:
            log_dir: Directory for log files (default: /tmp/skald-logs).
            log_file: Explicit log file path (overrides log_dir + auto name).
            private_mode: If True, set log directory to drwx------ (0o700).
            agent_name: Name of the agent being logged.
            provider: LLM provider name.
            model: Model name.
            enabled: Whether logging is enabled. A disabled logger is a no-op.
        """
        self._enabled = enabled
        self._file: _typing.TextIO | None = None
        self._file_path: _pathlib.Path | None = None
        self._session_id = _datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self._event_count = 0

        if not enabled:
            return

        if log_file:
            self._file_path = _pathlib.Path(log_file)
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            base_dir = _pathlib.Path(log_dir) if log_dir else DEFAULT_LOG_DIR
            base_dir.mkdir(parents=True, exist_ok=True)

            # Lock down permissions if private_mode (drwx------)
            if private_mode:
                _os.chmod(base_dir, 0o700)

            self._file_path = base_dir / f"skald_{self._session_id}.jsonl"

        # Held as instance state, closed in close()
        self._file = open(self._file_path, "w", encoding="utf-8")  # noqa: SIM115

        self._write_event(
            "session_start",
            {
                "session_id": self._session_id,
                "agent_name": agent_name,
                "provider": provider,
                "model": model,
            },
        )

    def _write_event(
        self,
        event_type: str,
        data: dict[str, _typing.Any],
    ) -> None:
        """Write an event to the log file."""
        if not self._enabled or not self._file:
            return

        self._event_count += 1
        event = {
            "timestamp": _datetime.datetime.now().isoformat(),
            "event_number": self._event_count,
            "event_type": event_type,
            **data,
        }

        try:
            self._file.write(_json.dumps(event, default=str) + "\n")
            self._file.flush()  # Ensure immediate write for crash safety
        except OSError:
            # Logging must never break the loop
            pass

    def log_system_prompt(self, prompt: str) -> None:
        self._write_event("system_prompt", {"content": prompt})

    def log_turn(self, turn: types.Turn) -> None:
        """Log a turn appended to the message log."""
        self._write_event("turn", {"turn": turn.to_dict()})

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: dict[str, _typing.Any],
        tool_id: str | None = None,
    ) -> None:
        """Log a tool call request."""
        self._write_event(
            "tool_call",
            {
                "tool_name": tool_name,
                "tool_input": tool_input,
                "tool_id": tool_id,
            },
        )

    def log_tool_result(
        self,
        tool_name: str,
        output: str,
        *,
        tool_id: str | None = None,
        is_error: bool = False,
        suspended: bool = False,
    ) -> None:
        """Log a tool outcome."""
        self._write_event(
            "tool_result",
            {
                "tool_name": tool_name,
                "tool_id": tool_id,
                "output": output,
                "is_error": is_error,
                "suspended": suspended,
            },
        )

    def log_hook(self, phase: str, details: dict[str, _typing.Any]) -> None:
        """Log a hook phase."""
        self._write_event("hook", {"phase": phase, "details": details})

    def log_interrupted(self, phase: str, partial_turn: types.Turn | None = None) -> None:
        """Log that the loop stopped on an interrupt."""
        self._write_event(
            "interrupted",
            {
                "phase": phase,
                "partial_turn": partial_turn.to_dict() if partial_turn is not None else None,
            },
        )

    def log_summary(self, max_iters: int, turn: types.Turn) -> None:
        """Log the summary produced when the iteration budget ran out."""
        self._write_event("summary", {"max_iters": max_iters, "content": turn.text})

    def log_usage(self, usage: api_types.Usage) -> None:
        """Log token usage."""
        self._write_event(
            "usage",
            {**usage.to_dict(), "total_tokens": usage.total_tokens},
        )

    def log_tool_metrics(self, metrics: dict[str, dict[str, _typing.Any]]) -> None:
        """Log cumulative tool statistics (MetricsCollector.to_dict())."""
        self._write_event("tool_metrics", {"tools": metrics})

    def log_error(self, error: str, context: str | None = None) -> None:
        """Log an error event."""
        self._write_event(
            "error",
            {
                "error": error,
                "context": context,
            },
        )

    def log_event(self, event_type: str, **kwargs: _typing.Any) -> None:
        """Log a generic event with arbitrary data.

        Args:
            event_type: The event type string.
            **kwargs: Arbitrary key-value pairs to include in the event.
        """
        self._write_event(event_type, dict(kwargs))

    @property
    def file_path(self) -> _pathlib.Path | None:
        """Get the log file path."""
        return self._file_path

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def session_id(self) -> str:
        return self._session_id

    def close(self) -> None:
        """Close the log file."""
        if not self._enabled or not self._file:
            return

        self._write_event(
            "session_end",
            {
                "total_events": self._event_count,
            },
        )

        try:
            self._file.close()
        except OSError:
            pass
        finally:
            self._file = None

    def __enter__(self) -> ConversationLogger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: _typing.Any,
    ) -> None:
        if exc_type:
            self.log_error(str(exc_val), context=f"Exception: {exc_type.__name__}")
        self.close()
