"""
Tool contract and execution for Skald.

Individual tools are supplied by the application; this package defines the
Tool base class, the registry, and the executor used by the acting phase.
"""

from skald.tools.base import (
    MetricsCollector,
    Tool,
    ToolContext,
    ToolMetrics,
    ToolResult,
    ToolSuspended,
)
from skald.tools.executor import DefaultToolExecutor, ToolExecutor
from skald.tools.registry import ToolRegistry

__all__ = [
    "DefaultToolExecutor",
    "MetricsCollector",
    "Tool",
    "ToolContext",
    "ToolExecutor",
    "ToolMetrics",
    "ToolRegistry",
    "ToolResult",
    "ToolSuspended",
]
