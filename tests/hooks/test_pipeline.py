"""Tests for hooks/pipeline.py."""

import asyncio as _asyncio
import pathlib as _pathlib

import pytest as _pytest

import skald.core.errors as errors
import skald.core.types as types
import skald.hooks.events as events
import skald.hooks.pipeline as pipeline
import tests.conftest as conftest


def _post_reasoning() -> events.PostReasoningEvent:
    return events.PostReasoningEvent(agent_name="test", turn=types.Turn.assistant_text("hi"))


class TestHookPipeline:
    @_pytest.mark.asyncio
    async def test_priority_order(self) -> None:
        order: list[str] = []
        late = conftest.RecordingHook(lambda e: order.append("late"), priority=200)
        early = conftest.RecordingHook(lambda e: order.append("early"), priority=10)
        middle = conftest.RecordingHook(lambda e: order.append("middle"))

        hooks = pipeline.HookPipeline([late, early, middle])
        await hooks.notify(_post_reasoning())

        assert order == ["early", "middle", "late"]
        assert hooks.hooks == (early, middle, late)

    @_pytest.mark.asyncio
    async def test_equal_priority_keeps_insertion_order(self) -> None:
        order: list[str] = []
        hooks = pipeline.HookPipeline(
            [
                conftest.RecordingHook(lambda e: order.append("a")),
                conftest.RecordingHook(lambda e: order.append("b")),
            ]
        )
        await hooks.notify(_post_reasoning())
        assert order == ["a", "b"]

    @_pytest.mark.asyncio
    async def test_later_hooks_see_edits(self) -> None:
        seen: list[bool] = []

        def stop(event: events.HookEvent) -> None:
            assert isinstance(event, events.PostReasoningEvent)
            event.stop_agent()

        def observe(event: events.HookEvent) -> None:
            assert isinstance(event, events.PostReasoningEvent)
            seen.append(event.stop_requested)

        hooks = pipeline.HookPipeline(
            [conftest.RecordingHook(stop, priority=1), conftest.RecordingHook(observe)]
        )
        result = await hooks.notify(_post_reasoning())

        assert seen == [True]
        assert result.stop_requested

    @_pytest.mark.asyncio
    async def test_returned_event_replaces(self) -> None:
        replacement = events.PostReasoningEvent(
            agent_name="test", turn=types.Turn.assistant_text("replaced")
        )
        hooks = pipeline.HookPipeline([conftest.RecordingHook(lambda e: replacement)])
        result = await hooks.notify(_post_reasoning())
        assert result is replacement

    @_pytest.mark.asyncio
    async def test_failure_wrapped_and_aborts(self) -> None:
        def boom(event: events.HookEvent) -> None:
            raise KeyError("missing")

        after = conftest.RecordingHook(priority=500)
        hooks = pipeline.HookPipeline([conftest.RecordingHook(boom, name="broken"), after])

        with _pytest.raises(errors.HookError) as exc_info:
            await hooks.notify(_post_reasoning())

        assert exc_info.value.hook_name == "broken"
        assert exc_info.value.phase == "post_reasoning"
        assert isinstance(exc_info.value.cause, KeyError)
        assert after.events == []

    @_pytest.mark.asyncio
    async def test_interrupt_passes_through(self) -> None:
        def interrupt(event: events.HookEvent) -> None:
            raise errors.AgentInterrupted()

        hooks = pipeline.HookPipeline([conftest.RecordingHook(interrupt)])
        with _pytest.raises(errors.AgentInterrupted):
            await hooks.notify(_post_reasoning())

    def test_add_and_remove(self) -> None:
        hooks = pipeline.HookPipeline()
        hook = conftest.RecordingHook()
        hooks.add(hook)
        assert len(hooks) == 1
        hooks.remove(hook)
        assert len(hooks) == 0
        with _pytest.raises(ValueError):
            hooks.remove(hook)

    def test_hook_name_falls_back_to_class(self) -> None:
        class Anonymous:
            priority = 100

            async def on_event(self, event: events.HookEvent) -> None:
                return None

        assert pipeline.hook_name(Anonymous()) == "Anonymous"  # type: ignore[arg-type]
        assert pipeline.hook_name(conftest.RecordingHook(name="rec")) == "rec"  # type: ignore[arg-type]

    def test_from_config_without_files(self, isolated_env: _pathlib.Path) -> None:
        hooks = pipeline.HookPipeline.from_config(isolated_env)
        assert len(hooks) == 0


class TestChunkNotifier:
    @_pytest.mark.asyncio
    async def test_delivers_in_order_after_drain(self) -> None:
        recorder = conftest.RecordingHook()
        notifier = pipeline.ChunkNotifier(pipeline.HookPipeline([recorder]))
        invocation = types.ToolInvocation(id="t1", name="echo")

        for i in range(5):
            notifier.submit(
                events.ActingChunkEvent(agent_name="test", invocation=invocation, chunk=str(i))
            )
        await notifier.drain()

        assert [e.chunk for e in recorder.events] == ["0", "1", "2", "3", "4"]  # type: ignore[attr-defined]

    @_pytest.mark.asyncio
    async def test_submit_does_not_wait_for_hooks(self) -> None:
        release = _asyncio.Event()

        class SlowHook:
            priority = 100

            def __init__(self) -> None:
                self.count = 0

            async def on_event(self, event: events.HookEvent) -> None:
                await release.wait()
                self.count += 1

        slow = SlowHook()
        notifier = pipeline.ChunkNotifier(pipeline.HookPipeline([slow]))  # type: ignore[list-item]
        invocation = types.ToolInvocation(id="t1", name="echo")
        notifier.submit(events.ActingChunkEvent(agent_name="t", invocation=invocation, chunk="x"))
        notifier.submit(events.ActingChunkEvent(agent_name="t", invocation=invocation, chunk="y"))

        await _asyncio.sleep(0)
        assert slow.count == 0

        release.set()
        await notifier.drain()
        assert slow.count == 2

    @_pytest.mark.asyncio
    async def test_drain_reports_first_failure(self) -> None:
        def fail(event: events.HookEvent) -> None:
            raise RuntimeError("chunk hook broke")

        notifier = pipeline.ChunkNotifier(
            pipeline.HookPipeline([conftest.RecordingHook(fail, name="chunky")])
        )
        invocation = types.ToolInvocation(id="t1", name="echo")
        notifier.submit(events.ActingChunkEvent(agent_name="t", invocation=invocation, chunk="x"))

        with _pytest.raises(errors.HookError, match="chunky"):
            await notifier.drain()

    @_pytest.mark.asyncio
    async def test_cancel_discards_pending(self) -> None:
        release = _asyncio.Event()
        recorder = conftest.RecordingHook()

        class BlockingHook:
            priority = 1

            async def on_event(self, event: events.HookEvent) -> None:
                await release.wait()

        notifier = pipeline.ChunkNotifier(
            pipeline.HookPipeline([BlockingHook(), recorder])  # type: ignore[list-item]
        )
        invocation = types.ToolInvocation(id="t1", name="echo")
        for chunk in "abc":
            notifier.submit(
                events.ActingChunkEvent(agent_name="t", invocation=invocation, chunk=chunk)
            )
        await _asyncio.sleep(0)

        await notifier.cancel()
        release.set()
        await notifier.drain()

        assert recorder.events == []

    @_pytest.mark.asyncio
    async def test_empty_pipeline_is_noop(self) -> None:
        notifier = pipeline.ChunkNotifier(pipeline.HookPipeline())
        invocation = types.ToolInvocation(id="t1", name="echo")
        notifier.submit(events.ActingChunkEvent(agent_name="t", invocation=invocation, chunk="x"))
        await notifier.drain()
