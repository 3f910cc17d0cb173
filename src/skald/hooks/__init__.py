"""
Hook system for Skald.

Hooks intercept the agent loop at every phase boundary: before and after
reasoning, around each tool call, and around the summary. They can rewrite
prompts and tool arguments, replace outcomes, stop the loop, or send it back
to reasoning.
"""

from skald.hooks.config import HookDefinition, HooksConfig, load_hooks, load_merged_config
from skald.hooks.events import (
    ActingChunkEvent,
    HookEvent,
    HookPhase,
    PostActingEvent,
    PostReasoningEvent,
    PostSummaryEvent,
    PreActingEvent,
    PreReasoningEvent,
    PreSummaryEvent,
    ReasoningChunkEvent,
    SummaryChunkEvent,
)
from skald.hooks.pipeline import ChunkNotifier, Hook, HookPipeline
from skald.hooks.structured import StructuredOutputHook, StructuredOutputTool

__all__ = [
    "ActingChunkEvent",
    "ChunkNotifier",
    "Hook",
    "HookDefinition",
    "HookEvent",
    "HookPhase",
    "HookPipeline",
    "HooksConfig",
    "PostActingEvent",
    "PostReasoningEvent",
    "PostSummaryEvent",
    "PreActingEvent",
    "PreReasoningEvent",
    "PreSummaryEvent",
    "ReasoningChunkEvent",
    "StructuredOutputHook",
    "StructuredOutputTool",
    "SummaryChunkEvent",
    "load_hooks",
    "load_merged_config",
]
