"""
Reasoning/acting controller - the agent loop.

The loop is an explicit state machine:

    Reasoning(i) --tools requested--> Acting(i) --outcomes--> Reasoning(i+1)
    Reasoning(i) --no tools / stop--> Done
    Reasoning(i) --goto hook--------> Reasoning(i+1, iteration check suppressed)
    Reasoning(i >= max_iters) ------> Summarizing --> Done
    Acting(i) --stop / suspension---> Done

Each state handler returns the next state; there is no recursion. The
message log is the only state that outlives a call to handle_input().
"""

from __future__ import annotations

import copy as _copy
import dataclasses as _dataclasses
import json as _json
import logging as _logging
import threading as _threading
import typing as _typing

import skald.api.base as api_base
import skald.api.types as api_types
import skald.constants as _constants
import skald.core.accumulator as accumulator
import skald.core.errors as errors
import skald.core.memory as memory
import skald.core.pending as pending
import skald.core.policy as policy
import skald.core.types as types
import skald.core.validators as validators
import skald.hooks.events as events
import skald.hooks.pipeline as pipeline
import skald.hooks.structured as structured
import skald.logging.conversation_logger as conversation_logging
import skald.tools.base as tools_base
import skald.tools.executor as executor
import skald.tools.registry as registry

if _typing.TYPE_CHECKING:
    import skald.config as config

_logger = _logging.getLogger(__name__)

# Terminal reasons a structured-output call hands back instead of failing
_RESUMABLE_REASONS = frozenset(
    {
        types.GenerateReason.TOOL_SUSPENDED,
        types.GenerateReason.REASONING_STOP_REQUESTED,
        types.GenerateReason.ACTING_STOP_REQUESTED,
    }
)


# === Loop states ===


@_dataclasses.dataclass(frozen=True)
class Reasoning:
    """Ask the model for the next step."""

    iteration: int
    suppress_iteration_check: bool = False
    """Set when a post-reasoning hook sent the loop back here."""


@_dataclasses.dataclass(frozen=True)
class Acting:
    """Execute the pending tool calls of the latest assistant turn."""

    iteration: int


@_dataclasses.dataclass(frozen=True)
class Summarizing:
    """The iteration budget is spent; ask the model to wrap up."""


@_dataclasses.dataclass(frozen=True)
class Done:
    """Terminal state carrying the turn returned to the caller."""

    turn: types.Turn | None


LoopState = Reasoning | Acting | Summarizing | Done


def _as_turns(turns: types.Turn | _typing.Iterable[types.Turn] | None) -> list[types.Turn]:
    if turns is None:
        return []
    if isinstance(turns, types.Turn):
        return [turns]
    result = list(turns)
    for turn in result:
        if not isinstance(turn, types.Turn):
            raise TypeError(f"Expected Turn, got {type(turn).__name__}")
    return result


class ReActController:
    """
    Drives one agent through reasoning and acting until it finishes.

    Usage:
        controller = ReActController(provider, tools=[SearchTool()])
        reply = await controller.handle_input(Turn.user("hi"))
        print(reply.text, reply.reason)

    The returned turn's ``reason`` tells the caller why the loop stopped:
    - MODEL_STOP: the model answered without (registered) tool calls
    - REASONING_STOP_REQUESTED / ACTING_STOP_REQUESTED: a hook stopped it
    - TOOL_SUSPENDED: tools await external completion; resume with outcomes
    - MAX_ITERATIONS: the budget ran out and the model summarized

    One controller runs one loop at a time over its message log.
    """

    def __init__(
        self,
        provider: api_base.LLMProvider,
        *,
        tools: registry.ToolRegistry | _typing.Iterable[tools_base.Tool] | None = None,
        message_log: memory.MessageLog | None = None,
        hooks: pipeline.HookPipeline | _typing.Iterable[pipeline.Hook] | None = None,
        tool_executor: executor.ToolExecutor | None = None,
        system_prompt: str = "",
        name: str = _constants.DEFAULT_AGENT_NAME,
        max_iters: int = _constants.DEFAULT_MAX_ITERS,
        options: api_types.GenerateOptions | None = None,
        tool_policy: policy.ExecutionPolicy | None = policy.TOOL_DEFAULTS,
        execution_context: dict[str, _typing.Any] | None = None,
        conversation_logger: conversation_logging.ConversationLogger | None = None,
        validate_messages: bool = False,
        parallel_tools: bool = True,
        max_tool_output_chars: int | None = _constants.DEFAULT_TOOL_RESULT_MAX_CHARS,
    ) -> None:
        """
        Initialize the controller.

        Args:
            provider: Model transport used for reasoning and summaries.
            tools: Registry (cloned) or tools to register in a fresh one.
            message_log: Conversation history (default: a new in-memory log).
            hooks: Hook pipeline, or hooks to build one from.
            tool_executor: Executor for the acting phase (default:
                DefaultToolExecutor over the cloned registry).
            system_prompt: Prepended to every prompt; never stored in the log.
            name: Agent name stamped on produced turns.
            max_iters: Reasoning iterations before the loop summarizes.
            options: Default generation options.
            tool_policy: Timeout/retry policy for tool calls, merged over
                the tool defaults.
            execution_context: Extra values passed to tools via ToolContext.
            conversation_logger: Optional JSONL logger.
            validate_messages: Check log invariants before every model call.
            parallel_tools: Let the default executor run a batch concurrently.
            max_tool_output_chars: Tool outputs longer than this are truncated
                before post-acting hooks see them and before they are logged.
                None keeps outputs whole.

        Raises:
            ValueError: If max_iters is negative.
        """
        if max_iters < 0:
            raise ValueError(f"max_iters must be >= 0, got {max_iters}")
        if max_tool_output_chars is not None and max_tool_output_chars < 1:
            raise ValueError(
                f"max_tool_output_chars must be >= 1, got {max_tool_output_chars}"
            )

        self._provider = provider
        self._name = name
        self._system_prompt = system_prompt
        self._max_iters = max_iters
        self._log = message_log if message_log is not None else memory.InMemoryMessageLog()
        self._validate_messages = validate_messages
        self._conversation_logger = conversation_logger
        self._execution_context = dict(execution_context or {})
        self._max_tool_output_chars = max_tool_output_chars
        self._structured_tool: structured.StructuredOutputTool | None = None
        self._structured_output: _typing.Any = None

        # Each controller owns its registry; registrations never leak between loops
        if isinstance(tools, registry.ToolRegistry):
            self._tools = tools.clone()
        else:
            self._tools = registry.ToolRegistry(tools or ())

        if isinstance(hooks, pipeline.HookPipeline):
            self._hooks = hooks
        else:
            self._hooks = pipeline.HookPipeline(hooks or ())

        self._metrics = tools_base.MetricsCollector()
        self._executor: executor.ToolExecutor = tool_executor or executor.DefaultToolExecutor(
            self._tools,
            parallel=parallel_tools,
            metrics=self._metrics,
        )

        self._options = (options or api_types.GenerateOptions()).merged_with(None)
        self._options.execution_policy = policy.merge(
            self._options.execution_policy, policy.MODEL_DEFAULTS
        )
        self._tool_policy = policy.merge(tool_policy, policy.TOOL_DEFAULTS)

        # threading.Event so interrupt() is safe to call from another thread
        self._interrupt_requested = _threading.Event()

        if self._conversation_logger is not None and system_prompt:
            self._conversation_logger.log_system_prompt(system_prompt)

    @classmethod
    def from_settings(
        cls,
        provider: api_base.LLMProvider,
        settings: config.Settings,
        **overrides: _typing.Any,
    ) -> ReActController:
        """
        Create a controller configured from Settings.

        Hooks are loaded from hooks.yaml when enabled, and a conversation
        logger is opened when logging is enabled. Keyword overrides win over
        anything derived from the settings.
        """
        kwargs: dict[str, _typing.Any] = {
            "name": settings.agent.name,
            "system_prompt": settings.agent.system_prompt,
            "max_iters": settings.agent.max_iters,
            "options": api_types.GenerateOptions(
                temperature=settings.model.temperature,
                max_tokens=settings.model.max_tokens,
                execution_policy=settings.model.to_policy(),
            ),
            "tool_policy": settings.tools.to_policy(),
            "parallel_tools": settings.tools.parallel,
            "max_tool_output_chars": settings.tools.max_output_chars,
            "validate_messages": settings.agent.validate_messages,
        }
        if settings.hooks.enabled and "hooks" not in overrides:
            kwargs["hooks"] = pipeline.HookPipeline.from_config(
                settings.project_root,
                config_file=settings.hooks.config_file,
            )
        if settings.logging.enabled and "conversation_logger" not in overrides:
            kwargs["conversation_logger"] = conversation_logging.ConversationLogger(
                log_dir=settings.logging.dir,
                private_mode=settings.logging.private,
                agent_name=settings.agent.name,
                provider=provider.name,
                model=provider.model,
            )
        kwargs.update(overrides)
        return cls(provider, **kwargs)

    # === Properties ===

    @property
    def name(self) -> str:
        return self._name

    @property
    def message_log(self) -> memory.MessageLog:
        return self._log

    @property
    def hooks(self) -> pipeline.HookPipeline:
        return self._hooks

    @property
    def tools(self) -> registry.ToolRegistry:
        """This controller's own (cloned) tool registry."""
        return self._tools

    @property
    def max_iters(self) -> int:
        return self._max_iters

    @property
    def metrics(self) -> tools_base.MetricsCollector:
        """Tool metrics recorded by the default executor."""
        return self._metrics

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @property
    def structured_output(self) -> _typing.Any:
        """Validated value from the last successful structured-output call."""
        return self._structured_output

    # === Entry points ===

    async def handle_input(
        self,
        turns: types.Turn | _typing.Iterable[types.Turn] | None = (),
        *,
        output_model: _typing.Any = None,
    ) -> types.Turn | None:
        """
        Accept input and run the loop until it reaches a terminal state.

        Fresh input and resumption share this entry point; which one applies
        is decided by the pending tool calls in the log:
        - No pending calls: the turns are appended and the loop reasons.
        - Pending calls and no turns: the pending calls are executed (e.g.
          after an approval hook stopped the loop).
        - Pending calls and turns: the turns must supply tool outcomes for
          them. They are validated, appended, and the loop acts on whatever
          is still pending or reasons again once nothing is.

        With ``output_model`` the model must answer by calling the
        generate_response tool with data valid for that type. The validated
        value is kept in ``structured_output`` and the returned MODEL_STOP
        turn carries its JSON form in ``metadata["structured_output"]``.
        Suspensions and hook stops are still returned as usual; resume them
        with the same ``output_model``.

        Args:
            turns: Input turns (a single Turn is accepted).
            output_model: Optional pydantic type of the structured answer.

        Returns:
            The terminal turn tagged with its generate reason, or None when
            the model produced no content at all.

        Raises:
            ResumptionError: If resumption input is malformed. The log is
                left untouched.
            AgentInterrupted: If interrupt() was honored. Partial output has
                been appended to the log.
            HookError: If a hook failed.
            StructuredOutputError: If ``output_model`` was given and the loop
                finished without a valid response.
        """
        new_turns = _as_turns(turns)
        if output_model is not None:
            return await self._run_structured(new_turns, output_model)
        return await self._run(self._enter(new_turns))

    async def resume(
        self,
        turns: types.Turn | _typing.Iterable[types.Turn] | None = (),
        *,
        output_model: _typing.Any = None,
    ) -> types.Turn | None:
        """Resume after a suspension or stop. Same contract as handle_input()."""
        return await self.handle_input(turns, output_model=output_model)

    def interrupt(self) -> None:
        """
        Ask the running loop to stop.

        Honored before the next model or tool dispatch and after every
        streamed fragment. Safe to call from any thread.
        """
        self._interrupt_requested.set()

    def observe(self, turns: types.Turn | _typing.Iterable[types.Turn]) -> None:
        """Append turns to the log without running the loop."""
        self._append_all(_as_turns(turns))

    # === State machine ===

    def _enter(self, new_turns: list[types.Turn]) -> LoopState:
        """Accept input and pick the first state. Raises before the log changes."""
        self._interrupt_requested.clear()

        pending_set = pending.pending_ids(self._log.all())
        if not pending_set:
            self._append_all(new_turns)
            state: LoopState = Reasoning(0)
        elif not new_turns:
            _logger.debug("%s: continuing %d pending call(s)", self._name, len(pending_set))
            state = Acting(0)
        else:
            pending.validate_resumption(new_turns, pending_set)
            self._append_all(new_turns)
            if pending.pending_ids(self._log.all()):
                state = Acting(0)
            else:
                state = Reasoning(0)
        return state

    async def _run(self, state: LoopState) -> types.Turn | None:
        while not isinstance(state, Done):
            _logger.debug("%s: %s", self._name, state)
            if isinstance(state, Reasoning):
                state = await self._reasoning(state)
            elif isinstance(state, Acting):
                state = await self._acting(state)
            else:
                state = await self._summarizing()
        return state.turn

    async def _run_structured(
        self,
        new_turns: list[types.Turn],
        output_model: _typing.Any,
    ) -> types.Turn | None:
        tool = structured.StructuredOutputTool(output_model)
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is reserved for structured output")
        hook = structured.StructuredOutputHook()
        state = self._enter(new_turns)

        self._structured_output = None
        self._tools.register(tool)
        self._hooks.add(hook)
        self._structured_tool = tool
        try:
            turn = await self._run(state)
        finally:
            self._structured_tool = None
            self._hooks.remove(hook)
            self._tools.unregister(tool.name)

        if tool.completed:
            self._structured_output = tool.result
            final = types.Turn(
                role=types.Role.ASSISTANT,
                blocks=(types.TextBlock(_json.dumps(tool.response_data)),),
                name=self._name,
                metadata={"structured_output": tool.response_data},
            )
            self._append(final)
            return final.with_reason(types.GenerateReason.MODEL_STOP)

        if turn is not None and turn.reason in _RESUMABLE_REASONS:
            return turn
        raise errors.StructuredOutputError(
            f"The model finished without calling '{tool.name}' with a valid response"
        )

    async def _reasoning(self, state: Reasoning) -> LoopState:
        if state.iteration >= self._max_iters and not state.suppress_iteration_check:
            _logger.debug("%s: iteration budget (%d) spent", self._name, self._max_iters)
            return Summarizing()

        pre = await self._hooks.notify(
            events.PreReasoningEvent(
                agent_name=self._name,
                turns=self._prompt(),
                options=self._options.merged_with(None),
                tool_schemas=self._tools.schemas(),
            )
        )
        options = pre.options.merged_with(self._options)

        turn = await self._stream(
            pre.turns,
            pre.tool_schemas,
            options,
            chunk_event=events.ReasoningChunkEvent,
            phase="reasoning",
        )

        post = await self._hooks.notify(
            events.PostReasoningEvent(agent_name=self._name, turn=turn)
        )
        turn = post.turn

        if post.stop_requested:
            if turn is None:
                return Done(
                    types.Turn(
                        role=types.Role.ASSISTANT,
                        name=self._name,
                        reason=types.GenerateReason.REASONING_STOP_REQUESTED,
                    )
                )
            self._append(turn)
            return Done(turn.with_reason(types.GenerateReason.REASONING_STOP_REQUESTED))

        if post.goto_reasoning_requested:
            self._append_all(post.goto_turns)
            return Reasoning(state.iteration + 1, suppress_iteration_check=True)

        if turn is None:
            return Done(None)

        self._append(turn)
        if self._is_finished(turn):
            return Done(turn.with_reason(types.GenerateReason.MODEL_STOP))
        return Acting(state.iteration)

    async def _acting(self, state: Acting) -> LoopState:
        invocations = pending.pending_invocations(self._log.all())
        if not invocations:
            return Reasoning(state.iteration + 1)

        prepared: list[types.ToolInvocation] = []
        for invocation in invocations:
            detached = invocation.with_arguments(_copy.deepcopy(invocation.arguments))
            pre = await self._hooks.notify(
                events.PreActingEvent(agent_name=self._name, invocation=detached)
            )
            # Hooks may rewrite arguments, never the call id
            prepared.append(invocation.with_arguments(pre.invocation.arguments))

        self._check_interrupt("acting")

        if self._conversation_logger is not None:
            for invocation in prepared:
                self._conversation_logger.log_tool_call(
                    invocation.name, dict(invocation.arguments), invocation.id
                )

        outcomes = await self._execute(prepared)

        completed: list[tuple[types.ToolInvocation, types.ToolOutcome]] = []
        suspended: list[tuple[types.ToolInvocation, types.ToolOutcome]] = []
        for invocation, outcome in zip(prepared, outcomes, strict=True):
            if self._conversation_logger is not None:
                self._conversation_logger.log_tool_result(
                    outcome.name,
                    outcome.output,
                    tool_id=outcome.id,
                    is_error=outcome.is_error,
                    suspended=outcome.suspended,
                )
            (suspended if outcome.suspended else completed).append((invocation, outcome))

        stop_turn: types.Turn | None = None
        limit = self._max_tool_output_chars
        for invocation, outcome in completed:
            if limit is not None:
                outcome = outcome.truncated(limit)
            turn = types.Turn.tool_result(outcome, name=outcome.name, max_chars=None)
            post = await self._hooks.notify(
                events.PostActingEvent(
                    agent_name=self._name,
                    invocation=invocation,
                    outcome=outcome,
                    turn=turn,
                )
            )
            if post.outcome is not outcome:
                final_turn = types.Turn.tool_result(
                    post.outcome, name=post.outcome.name, max_chars=limit
                )
            else:
                final_turn = post.turn
            self._append(final_turn)
            if post.stop_requested and stop_turn is None:
                stop_turn = final_turn

        if stop_turn is not None:
            return Done(stop_turn.with_reason(types.GenerateReason.ACTING_STOP_REQUESTED))

        if suspended:
            _logger.debug(
                "%s: %d tool call(s) suspended: %s",
                self._name,
                len(suspended),
                ", ".join(inv.id for inv, _ in suspended),
            )
            blocks: list[types.ContentBlock] = []
            for invocation, outcome in suspended:
                blocks.extend((invocation, outcome))
            # Returned to the caller only; suspended outcomes never enter the log
            return Done(
                types.Turn(
                    role=types.Role.ASSISTANT,
                    blocks=tuple(blocks),
                    name=self._name,
                    reason=types.GenerateReason.TOOL_SUSPENDED,
                )
            )

        return Reasoning(state.iteration + 1)

    async def _summarizing(self) -> LoopState:
        if self._structured_tool is not None:
            message = (
                f"Failed to generate structured output within maximum iterations "
                f"({self._max_iters}). The model did not call the "
                f"'{self._structured_tool.name}' function with a valid response."
            )
            _logger.error("%s: %s", self._name, message)
            raise errors.StructuredOutputError(message)

        try:
            directive = types.Turn(
                role=types.Role.USER,
                blocks=(types.TextBlock(_constants.SUMMARY_DIRECTIVE),),
                name="system",
            )
            pre = await self._hooks.notify(
                events.PreSummaryEvent(
                    agent_name=self._name,
                    turns=[*self._prompt(), directive],
                    options=self._options.merged_with(None),
                )
            )
            turn = await self._stream(
                pre.turns,
                None,
                pre.options.merged_with(self._options),
                chunk_event=events.SummaryChunkEvent,
                phase="summary",
            )
            post = await self._hooks.notify(
                events.PostSummaryEvent(agent_name=self._name, turn=turn)
            )
            turn = post.turn
            if turn is None or turn.is_empty:
                turn = types.Turn.assistant_text(
                    f"Maximum iterations ({self._max_iters}) reached. "
                    "Unable to generate summary.",
                    name=self._name,
                )
        except errors.AgentInterrupted:
            raise
        except Exception as e:
            _logger.error("%s: summary failed: %s", self._name, e)
            if self._conversation_logger is not None:
                self._conversation_logger.log_error(str(e), context="summary")
            turn = types.Turn.assistant_text(
                f"Maximum iterations ({self._max_iters}) reached. Error generating summary: {e}",
                name=self._name,
            )

        self._append(turn)
        if self._conversation_logger is not None:
            self._conversation_logger.log_summary(self._max_iters, turn)
        return Done(turn.with_reason(types.GenerateReason.MAX_ITERATIONS))

    # === Helpers ===

    def _prompt(self) -> list[types.Turn]:
        """System prompt (if any) followed by the full log."""
        turns = self._log.all()
        if self._system_prompt:
            return [types.Turn.system(self._system_prompt), *turns]
        return turns

    async def _stream(
        self,
        turns: list[types.Turn],
        tool_schemas: list[api_types.ToolSchema] | None,
        options: api_types.GenerateOptions,
        *,
        chunk_event: type[events.ReasoningChunkEvent] | type[events.SummaryChunkEvent],
        phase: str,
    ) -> types.Turn | None:
        """
        Stream one model call through a fresh accumulator.

        Chunk hooks are notified in arrival order without holding up the
        stream, and drained before this returns.

        Raises:
            AgentInterrupted: After flushing the partial turn to the log.
        """
        self._check_interrupt(phase)
        if self._validate_messages:
            validators.validate_log(self._log.all())

        stream_accumulator = accumulator.StreamAccumulator(name=self._name)
        notifier = pipeline.ChunkNotifier(self._hooks)
        try:
            async for fragment in self._provider.stream(turns, tool_schemas, options):
                view = stream_accumulator.ingest(fragment)
                if view is not None and stream_accumulator.last_delta is not None:
                    notifier.submit(
                        chunk_event(
                            agent_name=self._name,
                            chunk=stream_accumulator.last_delta,
                            accumulated=view,
                        )
                    )
                if self._interrupt_requested.is_set():
                    raise self._interrupted(phase, stream_accumulator.snapshot())
        except BaseException:
            await notifier.cancel()
            raise
        await notifier.drain()

        turn = stream_accumulator.build()
        if (
            turn is not None
            and turn.usage is not None
            and self._conversation_logger is not None
        ):
            self._conversation_logger.log_usage(turn.usage)
        return turn

    async def _execute(
        self,
        invocations: list[types.ToolInvocation],
    ) -> list[types.ToolOutcome]:
        by_id = {invocation.id: invocation for invocation in invocations}
        notifier = pipeline.ChunkNotifier(self._hooks)

        async def on_chunk(call_id: str, tool_name: str, chunk: str) -> None:
            invocation = by_id.get(call_id)
            if invocation is not None:
                notifier.submit(
                    events.ActingChunkEvent(
                        agent_name=self._name, invocation=invocation, chunk=chunk
                    )
                )

        context = tools_base.ToolContext(
            agent_name=self._name,
            values=dict(self._execution_context),
            chunk_callback=on_chunk,
        )
        try:
            outcomes = await self._executor.execute(invocations, self._tool_policy, context)
        except BaseException:
            await notifier.cancel()
            raise
        await notifier.drain()

        if len(outcomes) != len(invocations):
            raise errors.SkaldError(
                f"Tool executor returned {len(outcomes)} outcome(s) "
                f"for {len(invocations)} invocation(s)"
            )
        return list(outcomes)

    def _check_interrupt(self, phase: str) -> None:
        if self._interrupt_requested.is_set():
            raise self._interrupted(phase, None)

    def _interrupted(
        self,
        phase: str,
        partial: types.Turn | None,
    ) -> errors.AgentInterrupted:
        """Flush the partial turn (if any) and build the exception to raise."""
        self._interrupt_requested.clear()
        flushed = None
        recovery = None
        if partial is not None:
            flushed = partial.with_reason(types.GenerateReason.INTERRUPTED)
            self._append(flushed)
        _logger.info("%s: interrupted during %s", self._name, phase)
        if self._conversation_logger is not None:
            self._conversation_logger.log_interrupted(phase, flushed)
        if flushed is not None and flushed.has_tool_invocations:
            # Half-streamed calls must not run; close them so new input is accepted
            recovery = types.Turn.assistant_text(
                _constants.INTERRUPT_RECOVERY_TEXT,
                name=self._name,
            )
            self._append(recovery)
        return errors.AgentInterrupted(partial_turn=flushed, recovery_turn=recovery)

    def _is_finished(self, turn: types.Turn) -> bool:
        """No tool invocations, or none that names a registered tool."""
        invocations = turn.tool_invocations
        return not invocations or not any(inv.name in self._tools for inv in invocations)

    def _append(self, turn: types.Turn) -> None:
        self._log.append(turn)
        if self._conversation_logger is not None:
            self._conversation_logger.log_turn(turn)

    def _append_all(self, turns: _typing.Iterable[types.Turn]) -> None:
        """Append turns in order; a rejected turn leaves the log untouched."""
        turns = list(turns)
        for turn in turns:
            memory.check_appendable(turn)
        for turn in turns:
            self._append(turn)
