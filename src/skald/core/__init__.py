"""
Core agent loop for Skald.

This module contains the data model, the message log, the streaming
accumulator, pending-call resolution, and the reasoning/acting controller.
Model transports and tools are consumed through the contracts in skald.api
and skald.tools.
"""

from skald.core.types import (
    ContentBlock,
    GenerateReason,
    ReasoningBlock,
    Role,
    TextBlock,
    ToolInvocation,
    ToolOutcome,
    Turn,
)
from skald.core.errors import (
    AgentInterrupted,
    HookError,
    HookLoadError,
    LogValidationError,
    ResumptionError,
    SkaldError,
    StructuredOutputError,
)
from skald.core.memory import InMemoryMessageLog, MessageLog
from skald.core.accumulator import StreamAccumulator
from skald.core.pending import pending_ids, pending_invocations, validate_resumption
from skald.core.policy import MODEL_DEFAULTS, TOOL_DEFAULTS, ExecutionPolicy
from skald.core.validators import validate_log

# Imported last: the controller pulls in skald.hooks and skald.tools
from skald.core.controller import ReActController  # noqa: E402

__all__ = [
    # Data model
    "ContentBlock",
    "GenerateReason",
    "ReasoningBlock",
    "Role",
    "TextBlock",
    "ToolInvocation",
    "ToolOutcome",
    "Turn",
    # Errors
    "AgentInterrupted",
    "HookError",
    "HookLoadError",
    "LogValidationError",
    "ResumptionError",
    "SkaldError",
    "StructuredOutputError",
    # Log
    "InMemoryMessageLog",
    "MessageLog",
    "validate_log",
    # Loop
    "ExecutionPolicy",
    "MODEL_DEFAULTS",
    "ReActController",
    "StreamAccumulator",
    "TOOL_DEFAULTS",
    "pending_ids",
    "pending_invocations",
    "validate_resumption",
]
