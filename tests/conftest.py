"""
Shared pytest fixtures for Skald tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import asyncio as _asyncio
import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import skald.api.base as api_base
import skald.api.types as api_types
import skald.config as config
import skald.core.types as types
import skald.hooks.events as events
import skald.tools.base as tools_base

# =============================================================================
# Scripted model provider
# =============================================================================

Script = list[api_types.StreamEvent]


def text_response(text: str, *, reasoning: str | None = None) -> Script:
    """A model turn that answers with text only."""
    fragments: Script = []
    if reasoning:
        fragments.append(api_types.StreamEvent.thinking_delta(reasoning))
    fragments.append(api_types.StreamEvent.text_delta(text))
    fragments.append(
        api_types.StreamEvent.stop(usage=api_types.Usage(input_tokens=10, output_tokens=5))
    )
    return fragments


def tool_response(*calls: tuple[str, str, dict[str, _typing.Any]], text: str = "") -> Script:
    """A model turn requesting tools, each given as (id, name, arguments)."""
    fragments: Script = []
    if text:
        fragments.append(api_types.StreamEvent.text_delta(text))
    for call_id, name, arguments in calls:
        fragments.append(
            api_types.StreamEvent.tool_call(call_id=call_id, name=name, arguments=arguments)
        )
    fragments.append(api_types.StreamEvent.stop(stop_reason="tool_calls"))
    return fragments


class ScriptedProvider(api_base.LLMProvider):
    """
    Provider that replays one scripted fragment list per model call.

    Every call is recorded (prompt turns, tool schemas, options) so tests
    can assert on what the model was shown.
    """

    def __init__(
        self,
        scripts: _typing.Iterable[Script] = (),
        *,
        fail_with: BaseException | None = None,
        after_fragment: _typing.Callable[[int, int], None] | None = None,
    ) -> None:
        self._scripts = list(scripts)
        self._fail_with = fail_with
        self._after_fragment = after_fragment
        self.calls: list[dict[str, _typing.Any]] = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def model(self) -> str:
        return "scripted-model"

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def stream(
        self,
        turns: list[types.Turn],
        tools: list[api_types.ToolSchema] | None,
        options: api_types.GenerateOptions,
    ) -> _typing.AsyncIterator[api_types.StreamEvent]:
        call_index = len(self.calls)
        self.calls.append({"turns": list(turns), "tools": tools, "options": options})
        if self._fail_with is not None:
            raise self._fail_with
        if call_index >= len(self._scripts):
            raise AssertionError(f"Unexpected model call #{call_index + 1}")
        for fragment_index, fragment in enumerate(self._scripts[call_index]):
            yield fragment
            # Let chunk hooks run between fragments
            await _asyncio.sleep(0)
            if self._after_fragment is not None:
                self._after_fragment(call_index, fragment_index)


# =============================================================================
# Tools
# =============================================================================


class EchoTool(tools_base.Tool):
    """Returns its ``text`` argument; records every call."""

    def __init__(self, name: str = "echo") -> None:
        self._name = name
        self.calls: list[dict[str, _typing.Any]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Echo the given text"

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {"type": "object", "properties": {"text": {"type": "string"}}}

    async def execute(
        self,
        arguments: dict[str, _typing.Any],
        context: tools_base.ToolContext,
    ) -> tools_base.ToolResult | str:
        self.calls.append(dict(arguments))
        await context.emit(f"echoing {arguments.get('text', '')}")
        return str(arguments.get("text", ""))


class SuspendingTool(tools_base.Tool):
    """Always asks for external completion."""

    def __init__(self, name: str = "ask_human", reason: str | None = None) -> None:
        self._name = name
        self._reason = reason
        self.call_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Ask a human"

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {"type": "object", "properties": {}}

    async def execute(
        self,
        arguments: dict[str, _typing.Any],  # noqa: ARG002
        context: tools_base.ToolContext,  # noqa: ARG002
    ) -> tools_base.ToolResult | str:
        self.call_count += 1
        raise tools_base.ToolSuspended(self._reason)


class FailingTool(tools_base.Tool):
    """Raises ``error`` until ``succeed_after`` attempts have failed."""

    def __init__(
        self,
        name: str = "flaky",
        *,
        error: Exception | None = None,
        succeed_after: int | None = None,
    ) -> None:
        self._name = name
        self._error = error or RuntimeError("boom")
        self._succeed_after = succeed_after
        self.call_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Fails on purpose"

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        return {"type": "object", "properties": {}}

    async def execute(
        self,
        arguments: dict[str, _typing.Any],  # noqa: ARG002
        context: tools_base.ToolContext,  # noqa: ARG002
    ) -> tools_base.ToolResult | str:
        self.call_count += 1
        if self._succeed_after is not None and self.call_count > self._succeed_after:
            return "recovered"
        raise self._error


# =============================================================================
# Hooks
# =============================================================================


class RecordingHook:
    """Records every event it sees; optionally delegates to a callback."""

    def __init__(
        self,
        callback: _typing.Callable[[events.HookEvent], _typing.Any] | None = None,
        *,
        priority: int = 100,
        name: str = "recorder",
    ) -> None:
        self.events: list[events.HookEvent] = []
        self._callback = callback
        self.priority = priority
        self.name = name

    @property
    def phases(self) -> list[str]:
        return [e.phase.value for e in self.events]

    def of(self, phase: events.HookPhase) -> list[events.HookEvent]:
        return [e for e in self.events if e.phase == phase]

    async def on_event(self, event: events.HookEvent) -> events.HookEvent | None:
        self.events.append(event)
        if self._callback is not None:
            return self._callback(event)  # type: ignore[no-any-return]
        return None


# =============================================================================
# Environment isolation
# =============================================================================


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """Return environment dict with SKALD_* keys removed."""
    return {k: v for k, v in _os.environ.items() if not k.startswith("SKALD_")}


@_pytest.fixture
def isolated_env(
    clean_env: dict[str, str],
    tmp_path: _pathlib.Path,
    monkeypatch: _pytest.MonkeyPatch,
) -> _typing.Iterator[_pathlib.Path]:
    """
    Isolate tests from the user's environment and config files.

    SKALD_* variables are cleared, the user config dir points into tmp_path,
    and the working directory is an empty project. Yields the project root.
    """
    project = tmp_path / "project"
    project.mkdir()
    (project / "pyproject.toml").write_text('[project]\nname = "test-project"\n')
    user_dir = tmp_path / "user-config"
    user_dir.mkdir()

    env = dict(clean_env)
    env["SKALD_CONFIG_DIR"] = str(user_dir)
    with _mock.patch.dict(_os.environ, env, clear=True):
        monkeypatch.chdir(project)
        yield project


@_pytest.fixture
def clean_settings(isolated_env: _pathlib.Path) -> config.Settings:  # noqa: ARG001
    """Settings built from defaults only."""
    return config.Settings.construct_without_dotenv()
