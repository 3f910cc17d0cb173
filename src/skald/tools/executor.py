"""
Tool execution for the acting phase.

The controller hands the executor a batch of invocations and an execution
policy; the executor returns one outcome per invocation, in the same order.
Tool failures never raise out of the executor: they become error outcomes.
"""

from __future__ import annotations

import asyncio as _asyncio
import logging as _logging
import time as _time
import typing as _typing

import skald.constants as _constants
import skald.core.policy as execution_policy
import skald.core.types as types
import skald.tools.base as base
import skald.tools.registry as registry

_logger = _logging.getLogger(__name__)


class ToolExecutor(_typing.Protocol):
    """
    Executes a batch of tool invocations.

    Implementations must return a list parallel in length and order to
    ``invocations``. A suspended outcome (``suspended=True``) marks a call
    left for external completion.
    """

    async def execute(
        self,
        invocations: _typing.Sequence[types.ToolInvocation],
        policy: execution_policy.ExecutionPolicy,
        context: base.ToolContext,
    ) -> list[types.ToolOutcome]: ...


class DefaultToolExecutor:
    """
    Executes invocations against a ToolRegistry.

    Handles:
    - Tool lookup (unknown tools become error outcomes)
    - Concurrent execution, results restored to invocation order
    - Per-attempt timeout and retry with exponential backoff
    - Suspension (ToolSuspended becomes a suspended outcome)
    - Metrics for every call
    """

    def __init__(
        self,
        tool_registry: registry.ToolRegistry,
        *,
        parallel: bool = True,
        chunk_callback: base.ChunkCallback | None = None,
        metrics: base.MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the executor.

        Args:
            tool_registry: Registry of available tools.
            parallel: Run the invocations of a batch concurrently.
            chunk_callback: Receives streamed tool output when the context
                passed to execute() carries no callback of its own.
            metrics: Collector to record into (default: a fresh one).
        """
        self._registry = tool_registry
        self._parallel = parallel
        self._chunk_callback = chunk_callback
        self._metrics = metrics if metrics is not None else base.MetricsCollector()

    @property
    def metrics(self) -> base.MetricsCollector:
        """Get the metrics collector for this executor."""
        return self._metrics

    @property
    def tool_registry(self) -> registry.ToolRegistry:
        return self._registry

    async def execute(
        self,
        invocations: _typing.Sequence[types.ToolInvocation],
        policy: execution_policy.ExecutionPolicy,
        context: base.ToolContext,
    ) -> list[types.ToolOutcome]:
        """
        Execute a batch of invocations.

        Args:
            invocations: Calls requested by the model, in order.
            policy: Timeout and retry policy for each call.
            context: Shared context; each call gets a copy bound to its id.

        Returns:
            One outcome per invocation, in invocation order.
        """
        if not invocations:
            return []

        if self._parallel and len(invocations) > 1:
            return list(
                await _asyncio.gather(
                    *(self._execute_one(inv, policy, context) for inv in invocations)
                )
            )

        outcomes = []
        for invocation in invocations:
            outcomes.append(await self._execute_one(invocation, policy, context))
        return outcomes

    async def _execute_one(
        self,
        invocation: types.ToolInvocation,
        policy: execution_policy.ExecutionPolicy,
        context: base.ToolContext,
    ) -> types.ToolOutcome:
        tool = self._registry.get(invocation.name)
        if tool is None:
            _logger.warning("Model requested unknown tool: %s", invocation.name)
            return _error_outcome(invocation, f"Unknown tool: {invocation.name}")

        call_context = context.for_call(invocation.id, invocation.name)
        if call_context.chunk_callback is None:
            call_context.chunk_callback = self._chunk_callback

        start_time = _time.perf_counter()
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await _asyncio.wait_for(
                    tool.execute(dict(invocation.arguments), call_context),
                    timeout=policy.timeout_seconds,
                )
            except base.ToolSuspended as e:
                self._record(invocation, start_time, success=False, suspended=True)
                _logger.debug("Tool %s (%s) suspended", invocation.name, invocation.id)
                return types.ToolOutcome(
                    id=invocation.id,
                    name=invocation.name,
                    output=e.reason or _constants.SUSPENDED_PLACEHOLDER,
                    suspended=True,
                )
            except Exception as e:
                if policy.should_retry(e, attempt):
                    delay = policy.backoff_delay(attempt)
                    _logger.warning(
                        "Tool %s failed (attempt %d/%d), retrying in %.1fs: %s",
                        invocation.name,
                        attempt,
                        policy.attempts,
                        delay,
                        _describe(e, policy),
                    )
                    await _asyncio.sleep(delay)
                    continue
                self._record(invocation, start_time, success=False)
                _logger.warning("Tool %s failed: %s", invocation.name, _describe(e, policy))
                return _error_outcome(
                    invocation, f"Tool execution failed: {_describe(e, policy)}"
                )

            outcome = _to_outcome(invocation, result)
            self._record(invocation, start_time, success=not outcome.is_error)
            return outcome

    def _record(
        self,
        invocation: types.ToolInvocation,
        start_time: float,
        *,
        success: bool,
        suspended: bool = False,
    ) -> None:
        duration_ms = (_time.perf_counter() - start_time) * 1000
        self._metrics.record(invocation.name, success, duration_ms, suspended=suspended)


def _describe(exc: BaseException, policy: execution_policy.ExecutionPolicy) -> str:
    if isinstance(exc, TimeoutError):
        return f"timed out after {policy.timeout_seconds}s"
    return str(exc) or type(exc).__name__


def _error_outcome(invocation: types.ToolInvocation, message: str) -> types.ToolOutcome:
    return types.ToolOutcome(
        id=invocation.id,
        name=invocation.name,
        output=message,
        is_error=True,
    )


def _to_outcome(
    invocation: types.ToolInvocation,
    result: base.ToolResult | str,
) -> types.ToolOutcome:
    if isinstance(result, base.ToolResult):
        return types.ToolOutcome(
            id=invocation.id,
            name=invocation.name,
            output=result.text,
            is_error=not result.success,
        )
    return types.ToolOutcome(id=invocation.id, name=invocation.name, output=str(result))
