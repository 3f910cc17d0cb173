"""
Model transport contract for Skald.

The loop consumes models through LLMProvider.stream(); concrete transports
live outside this package and normalize their responses to StreamEvents.
"""

from skald.api.base import LLMProvider
from skald.api.types import (
    GenerateOptions,
    StreamEvent,
    ToolSchema,
    Usage,
)

__all__ = [
    "GenerateOptions",
    "LLMProvider",
    "StreamEvent",
    "ToolSchema",
    "Usage",
]
