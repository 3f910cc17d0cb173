"""
Hook pipeline - ordered dispatch of phase events to hooks.

Hooks are plain objects with a ``priority`` and an async ``on_event``. The
pipeline threads each event through them sequentially: a hook sees every
edit made by the hooks before it.
"""

from __future__ import annotations

import asyncio as _asyncio
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import skald.constants as _constants
import skald.core.errors as errors
import skald.hooks.config as config
import skald.hooks.events as events

_logger = _logging.getLogger(__name__)


@_typing.runtime_checkable
class Hook(_typing.Protocol):
    """
    Anything that handles hook events.

    Hooks receive every event and ignore the phases they do not care about.
    Returning None keeps the (possibly edited in place) event; returning an
    event replaces it for the remaining hooks.
    """

    priority: int
    """Lower runs first. Hooks with equal priority run in insertion order."""

    async def on_event(self, event: events.HookEvent) -> events.HookEvent | None: ...


def hook_name(hook: Hook) -> str:
    """Display name of a hook: its ``name`` attribute or its class name."""
    name = getattr(hook, "name", None)
    return name if isinstance(name, str) and name else type(hook).__name__


def _priority(hook: Hook) -> int:
    return getattr(hook, "priority", _constants.DEFAULT_HOOK_PRIORITY)


class HookPipeline:
    """
    Priority-ordered list of hooks.

    A hook that raises aborts the phase: the failure propagates as a
    HookError naming the hook and the phase, and nothing already done by
    earlier hooks is rolled back.
    """

    def __init__(self, hooks: _typing.Iterable[Hook] = ()) -> None:
        self._hooks: list[Hook] = []
        for hook in hooks:
            self.add(hook)

    @classmethod
    def from_config(
        cls,
        project_root: _pathlib.Path | None = None,
        *,
        config_file: _pathlib.Path | None = None,
    ) -> HookPipeline:
        """
        Create a pipeline from hook configuration files.

        Loads and merges global (~/.config/skald/hooks.yaml) and project
        (.skald/hooks.yaml) configurations, or a single explicit file.

        Args:
            project_root: Project root directory.
            config_file: Explicit hooks.yaml, used instead of the layered files.

        Returns:
            Pipeline holding every enabled hook.

        Raises:
            ValueError: If a configuration file is invalid.
            HookLoadError: If a hook target cannot be imported or built.
        """
        if config_file is not None:
            hooks_config = config.load_hooks_yaml(config_file)
        else:
            hooks_config = config.load_merged_config(project_root)
        return cls(config.load_hooks(hooks_config))

    @property
    def hooks(self) -> tuple[Hook, ...]:
        """Hooks in dispatch order."""
        return tuple(self._hooks)

    def add(self, hook: Hook) -> None:
        """Add a hook, keeping the list ordered by priority."""
        self._hooks.append(hook)
        # sort() is stable, so equal priorities keep insertion order
        self._hooks.sort(key=_priority)

    def remove(self, hook: Hook) -> None:
        """
        Remove a hook.

        Raises:
            ValueError: If the hook is not in the pipeline.
        """
        self._hooks.remove(hook)

    async def notify(self, event: events.EventT) -> events.EventT:
        """
        Thread an event through every hook in order.

        Args:
            event: The event for the current phase.

        Returns:
            The event after the last hook (edited or replaced).

        Raises:
            HookError: If a hook fails.
        """
        for hook in list(self._hooks):
            try:
                result = await hook.on_event(event)
            except errors.AgentInterrupted:
                raise
            except Exception as e:
                raise errors.HookError(hook_name(hook), event.phase.value, e) from e
            if result is not None:
                event = result  # type: ignore[assignment]
        return event

    def __len__(self) -> int:
        return len(self._hooks)


class ChunkNotifier:
    """
    Fire-and-forget dispatch of chunk events, in order.

    A single consumer task drains a queue, so chunk hooks see fragments in
    arrival order and never hold up the stream that produces them. Call
    drain() before moving past the phase; call cancel() to throw away
    whatever is still queued.
    """

    def __init__(self, pipeline: HookPipeline) -> None:
        self._pipeline = pipeline
        self._queue: _asyncio.Queue[events.HookEvent | None] = _asyncio.Queue()
        self._task: _asyncio.Task[None] | None = None
        self._error: BaseException | None = None

    def submit(self, event: events.HookEvent) -> None:
        """Queue an event for the chunk hooks without waiting for them."""
        if not len(self._pipeline):
            return
        if self._task is None:
            self._task = _asyncio.get_running_loop().create_task(self._consume())
        self._queue.put_nowait(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            if self._error is not None:
                # A chunk hook already failed; drain() will report it
                continue
            try:
                await self._pipeline.notify(event)
            except Exception as e:
                self._error = e

    async def drain(self) -> None:
        """
        Wait until every queued notification has been delivered.

        Raises:
            HookError: The first chunk hook failure, if any.
        """
        task, self._task = self._task, None
        if task is not None:
            self._queue.put_nowait(None)
            await task
        error, self._error = self._error, None
        if error is not None:
            raise error

    async def cancel(self) -> None:
        """Discard pending notifications and stop the consumer."""
        task, self._task = self._task, None
        self._error = None
        self._queue = _asyncio.Queue()
        if task is not None:
            task.cancel()
            await _asyncio.gather(task, return_exceptions=True)
            _logger.debug("Discarded pending chunk notifications")
