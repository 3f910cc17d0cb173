"""Tests for tools/registry.py and tools/base.py."""

import pytest as _pytest

import skald.tools.base as tools_base
import skald.tools.registry as registry
import tests.conftest as conftest


class TestToolRegistry:
    def test_register_and_get(self) -> None:
        echo = conftest.EchoTool()
        tools = registry.ToolRegistry([echo])
        assert tools.get("echo") is echo
        assert tools.get("missing") is None
        assert "echo" in tools
        assert len(tools) == 1

    def test_duplicate_rejected(self) -> None:
        tools = registry.ToolRegistry([conftest.EchoTool()])
        with _pytest.raises(ValueError, match="already registered"):
            tools.register(conftest.EchoTool())

    def test_get_or_raise_lists_available(self) -> None:
        tools = registry.ToolRegistry([conftest.EchoTool("b"), conftest.EchoTool("a")])
        with _pytest.raises(KeyError, match="Available: a, b"):
            tools.get_or_raise("c")

    def test_listing_is_sorted(self) -> None:
        tools = registry.ToolRegistry([conftest.EchoTool("zeta"), conftest.EchoTool("alpha")])
        assert tools.list_names() == ["alpha", "zeta"]
        assert [t.name for t in tools] == ["alpha", "zeta"]
        assert [s.name for s in tools.schemas()] == ["alpha", "zeta"]

    def test_unregister(self) -> None:
        echo = conftest.EchoTool()
        tools = registry.ToolRegistry([echo])
        assert tools.unregister("echo") is echo
        assert tools.unregister("echo") is None
        assert len(tools) == 0

    def test_clone_is_independent(self) -> None:
        echo = conftest.EchoTool()
        original = registry.ToolRegistry([echo])
        clone = original.clone()

        clone.register(conftest.EchoTool("extra"))
        original.unregister("echo")

        assert clone.list_names() == ["echo", "extra"]
        assert original.list_names() == []
        assert clone.get("echo") is echo


class TestToolBase:
    def test_schema(self) -> None:
        schema = conftest.EchoTool().to_schema()
        assert schema.name == "echo"
        assert schema.input_schema["properties"]["text"] == {"type": "string"}
        assert schema.to_openai_format()["function"]["name"] == "echo"

    @_pytest.mark.parametrize(
        ("result", "text"),
        [
            (tools_base.ToolResult(success=True, output="out"), "out"),
            (tools_base.ToolResult(success=False, output="", error="bad"), "bad"),
            (tools_base.ToolResult(success=False, output="log", error="bad"), "bad\nlog"),
        ],
    )
    def test_tool_result_text(self, result: tools_base.ToolResult, text: str) -> None:
        assert result.text == text

    def test_suspended_default_message(self) -> None:
        exc = tools_base.ToolSuspended()
        assert exc.reason is None
        assert str(exc) == "Tool execution suspended"

    @_pytest.mark.asyncio
    async def test_emit_without_callback_is_noop(self) -> None:
        await tools_base.ToolContext(agent_name="t").emit("ignored")

    def test_for_call_copies_values(self) -> None:
        context = tools_base.ToolContext(agent_name="t", values={"k": 1})
        bound = context.for_call("t1", "echo")
        bound.values["k"] = 2
        assert bound.call_id == "t1"
        assert bound.tool_name == "echo"
        assert context.get("k") == 1
        assert context.get("missing", "default") == "default"


class TestMetricsCollector:
    def test_record_and_summary(self) -> None:
        metrics = tools_base.MetricsCollector()
        metrics.record("a", True, 10.0)
        metrics.record("a", False, 30.0)
        metrics.record("b", False, 5.0, suspended=True)

        a = metrics.get("a")
        assert a is not None
        assert a.call_count == 2
        assert a.average_duration_ms == 20.0
        assert a.success_rate == 50.0
        assert [m.tool_name for m in metrics.all()] == ["a", "b"]

        summary = metrics.summary()
        assert summary["total_calls"] == 3
        assert summary["total_suspended"] == 1
        assert summary["total_failures"] == 1
        assert summary["tools_used"] == 2
        assert set(metrics.to_dict()) == {"a", "b"}

    def test_empty(self) -> None:
        metrics = tools_base.MetricsCollector()
        assert metrics.summary()["success_rate"] == 0.0
        assert tools_base.ToolMetrics(tool_name="x").success_rate == 0.0
