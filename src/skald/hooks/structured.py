"""
Structured output.

The model delivers a structured answer by calling a ``generate_response``
tool whose single ``response`` argument is described by a pydantic type.
The tool validates what the model sends; the hook keeps the loop going
until a valid response arrives:

- pre_reasoning: after a reminder, force tool_choice to generate_response
- post_reasoning: no tool call -> reason again with a reminder
- post_acting: generate_response succeeded -> stop the loop

ReActController.handle_input(..., output_model=...) wires both in for the
length of one call.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import pydantic as _pydantic

import skald.constants as _constants
import skald.core.types as types
import skald.hooks.builtin as builtin
import skald.hooks.events as events
import skald.tools.base as tools_base

_logger = _logging.getLogger(__name__)

REMINDER_METADATA_KEY = "structured_output_reminder"

_MAX_ERROR_CHARS = 200


def _describe_errors(error: _pydantic.ValidationError) -> str:
    """One-line summary of a validation error, short enough for the model."""
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "response"
        parts.append(f"{location}: {detail['msg']}")
    message = "; ".join(parts) or "Unable to parse response structure"
    if len(message) > _MAX_ERROR_CHARS:
        message = message[: _MAX_ERROR_CHARS - 3] + "..."
    return message


class StructuredOutputTool(tools_base.Tool):
    """
    The ``generate_response`` tool.

    ``output_model`` is anything pydantic can validate: a BaseModel, a
    dataclass, a TypedDict, or a plain annotation such as ``list[int]``.
    A valid call stores the validated value in ``result`` and its JSON form
    in ``response_data``; an invalid one becomes an error outcome telling
    the model what to fix.
    """

    def __init__(self, output_model: _typing.Any) -> None:
        self._adapter: _pydantic.TypeAdapter[_typing.Any] = _pydantic.TypeAdapter(output_model)
        self.result: _typing.Any = None
        self.response_data: _typing.Any = None
        self.completed = False

    @property
    def name(self) -> str:
        return _constants.STRUCTURED_OUTPUT_TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Generate the final structured response. Call this function when "
            "you have all the information needed to provide a complete answer."
        )

    @property
    def input_schema(self) -> dict[str, _typing.Any]:
        response_schema = dict(self._adapter.json_schema())
        # References resolve from the root of the tool schema
        definitions = response_schema.pop("$defs", None)
        schema: dict[str, _typing.Any] = {
            "type": "object",
            "properties": {"response": response_schema},
            "required": ["response"],
        }
        if definitions:
            schema["$defs"] = definitions
        return schema

    async def execute(
        self,
        arguments: dict[str, _typing.Any],
        context: tools_base.ToolContext,  # noqa: ARG002
    ) -> tools_base.ToolResult:
        if "response" not in arguments:
            return self._rejected("missing required argument 'response'")
        try:
            value = self._adapter.validate_python(arguments["response"])
        except _pydantic.ValidationError as e:
            return self._rejected(_describe_errors(e))

        self.result = value
        self.response_data = self._adapter.dump_python(value, mode="json")
        self.completed = True
        _logger.debug("Structured output accepted")
        return tools_base.ToolResult(success=True, output="Successfully generated response.")

    def _rejected(self, problem: str) -> tools_base.ToolResult:
        _logger.warning("Structured output rejected: %s", problem)
        return tools_base.ToolResult(
            success=False,
            output=(
                f"Please review the expected structure and call '{self.name}' "
                "again with a correctly formatted response object."
            ),
            error=f"Schema validation failed: {problem}",
        )


class StructuredOutputHook(builtin.RequireToolCallHook):
    """
    Steer the loop until ``generate_response`` succeeds.

    Responses without any tool call are retried with a reminder (at most
    ``max_retries`` times in a row). With ``force_tool_choice`` the retry
    also pins tool_choice to generate_response.
    """

    name = "structured-output"
    priority = 50

    def __init__(
        self,
        *,
        max_retries: int = 3,
        force_tool_choice: bool = True,
        priority: int | None = None,
    ) -> None:
        super().__init__(
            max_retries=max_retries,
            reminder=_constants.STRUCTURED_OUTPUT_REMINDER,
            priority=priority,
        )
        self._force_tool_choice = force_tool_choice

    async def on_pre_reasoning(self, event: events.PreReasoningEvent) -> None:
        if not self._force_tool_choice or not event.turns:
            return
        if event.turns[-1].metadata.get(REMINDER_METADATA_KEY):
            event.options.tool_choice = _constants.STRUCTURED_OUTPUT_TOOL_NAME
            _logger.debug("Forcing tool_choice to %s", _constants.STRUCTURED_OUTPUT_TOOL_NAME)

    async def on_post_acting(self, event: events.PostActingEvent) -> None:
        if (
            event.invocation.name == _constants.STRUCTURED_OUTPUT_TOOL_NAME
            and not event.outcome.is_error
        ):
            event.stop_agent()

    def _reminder_turn(self, text: str) -> types.Turn:
        return types.Turn(
            role=types.Role.USER,
            blocks=(types.TextBlock(text),),
            name="system",
            metadata={"hook": self.name, REMINDER_METADATA_KEY: True},
        )
