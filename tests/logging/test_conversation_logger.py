"""Tests for logging/conversation_logger.py."""

import json as _json
import pathlib as _pathlib
import stat as _stat
import typing as _typing

import pytest as _pytest

import skald.api.types as api_types
import skald.core.types as types
import skald.logging.conversation_logger as conversation_logger


def _events(path: _pathlib.Path) -> list[dict[str, _typing.Any]]:
    return [_json.loads(line) for line in path.read_text().splitlines() if line]


class TestConversationLogger:
    def test_session_start_and_end(self, tmp_path: _pathlib.Path) -> None:
        path = tmp_path / "log.jsonl"
        logger = conversation_logger.ConversationLogger(
            log_file=path, agent_name="bot", provider="scripted", model="m1"
        )
        logger.close()

        events = _events(path)
        assert [e["event_type"] for e in events] == ["session_start", "session_end"]
        assert events[0]["agent_name"] == "bot"
        assert events[0]["provider"] == "scripted"
        assert events[0]["model"] == "m1"
        assert events[0]["session_id"] == logger.session_id
        assert events[1]["total_events"] == 1
        assert [e["event_number"] for e in events] == [1, 2]

    def test_event_payloads(self, tmp_path: _pathlib.Path) -> None:
        path = tmp_path / "log.jsonl"
        with conversation_logger.ConversationLogger(log_file=path) as logger:
            logger.log_system_prompt("sys")
            logger.log_turn(types.Turn.user("hi"))
            logger.log_tool_call("echo", {"text": "x"}, "t1")
            logger.log_tool_result("echo", "x", tool_id="t1", suspended=True)
            logger.log_usage(api_types.Usage(input_tokens=3, output_tokens=4))
            logger.log_interrupted("reasoning", types.Turn.assistant_text("par"))
            logger.log_summary(5, types.Turn.assistant_text("summary"))
            logger.log_event("custom", answer=42)

        by_type = {e["event_type"]: e for e in _events(path)}
        assert by_type["system_prompt"]["content"] == "sys"
        assert by_type["turn"]["turn"]["blocks"] == [{"type": "text", "text": "hi"}]
        assert by_type["tool_call"]["tool_input"] == {"text": "x"}
        assert by_type["tool_result"]["suspended"] is True
        assert by_type["usage"]["total_tokens"] == 7
        assert by_type["interrupted"]["phase"] == "reasoning"
        assert by_type["interrupted"]["partial_turn"]["blocks"][0]["text"] == "par"
        assert by_type["summary"]["max_iters"] == 5
        assert by_type["summary"]["content"] == "summary"
        assert by_type["custom"]["answer"] == 42

    def test_exception_in_context_logs_error(self, tmp_path: _pathlib.Path) -> None:
        path = tmp_path / "log.jsonl"
        with (
            _pytest.raises(RuntimeError),
            conversation_logger.ConversationLogger(log_file=path),
        ):
            raise RuntimeError("kaboom")

        errors = [e for e in _events(path) if e["event_type"] == "error"]
        assert errors[0]["error"] == "kaboom"
        assert errors[0]["context"] == "Exception: RuntimeError"

    def test_log_dir_naming_and_private_mode(self, tmp_path: _pathlib.Path) -> None:
        log_dir = tmp_path / "logs"
        logger = conversation_logger.ConversationLogger(log_dir=log_dir, private_mode=True)
        logger.close()

        assert logger.file_path is not None
        assert logger.file_path.parent == log_dir
        assert logger.file_path.name == f"skald_{logger.session_id}.jsonl"
        assert _stat.S_IMODE(log_dir.stat().st_mode) == 0o700

    def test_disabled_logger_writes_nothing(self, tmp_path: _pathlib.Path) -> None:
        logger = conversation_logger.ConversationLogger(log_dir=tmp_path / "logs", enabled=False)
        logger.log_turn(types.Turn.user("hi"))
        logger.close()
        assert not logger.enabled
        assert logger.file_path is None
        assert not (tmp_path / "logs").exists()

    def test_close_is_idempotent(self, tmp_path: _pathlib.Path) -> None:
        path = tmp_path / "log.jsonl"
        logger = conversation_logger.ConversationLogger(log_file=path)
        logger.close()
        logger.close()
        logger.log_turn(types.Turn.user("late"))
        assert [e["event_type"] for e in _events(path)] == ["session_start", "session_end"]
