"""
Tool registry for managing available tools.

The registry provides a central place to register, look up, and list tools.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import skald.api.types as api_types
import skald.tools.base as base

_logger = _logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for tool instances.

    Tools are registered by name and looked up for execution. Controllers
    clone the registry they are given, so registering a tool on one live
    loop never affects another.
    """

    def __init__(self, tools: _typing.Iterable[base.Tool] = ()) -> None:
        self._tools: dict[str, base.Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: base.Tool) -> None:
        """
        Register a tool instance.

        Args:
            tool: Tool instance to register

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        _logger.debug("Registered tool: %s", tool.name)

    def unregister(self, name: str) -> base.Tool | None:
        """Remove a tool by name, returning it if it was registered."""
        return self._tools.pop(name, None)

    def get(self, name: str) -> base.Tool | None:
        """
        Get a tool by name.

        Args:
            name: Tool name (case-sensitive)

        Returns:
            Tool instance or None if not found
        """
        return self._tools.get(name)

    def get_or_raise(self, name: str) -> base.Tool:
        """
        Get a tool by name, raising if not found.

        Raises:
            KeyError: If tool is not found
        """
        tool = self._tools.get(name)
        if tool is None:
            available = ", ".join(sorted(self._tools.keys()))
            raise KeyError(f"Tool '{name}' not found. Available: {available}")
        return tool

    def list_tools(self) -> list[base.Tool]:
        """List all registered tools, sorted by name."""
        return sorted(self._tools.values(), key=lambda t: t.name)

    def list_names(self) -> list[str]:
        return sorted(self._tools.keys())

    def schemas(self) -> list[api_types.ToolSchema]:
        """Get the schemas of all tools, for the model request."""
        return [tool.to_schema() for tool in self.list_tools()]

    def clone(self) -> ToolRegistry:
        """
        Return an independent registry holding the same tool instances.

        Registrations on the clone do not affect this registry (and vice
        versa). Tool instances themselves are shared.
        """
        copy = ToolRegistry()
        copy._tools = dict(self._tools)
        return copy

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> _typing.Iterator[base.Tool]:
        return iter(self.list_tools())
