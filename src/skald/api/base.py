"""
Abstract base class for model providers.

The agent loop talks to models only through this interface. Concrete
transports (HTTP clients, SDK wrappers, local runtimes) translate turns into
their wire format and normalize the streamed response into StreamEvents.
"""

from __future__ import annotations

import abc as _abc
import typing as _typing

import skald.api.types as types

if _typing.TYPE_CHECKING:
    import skald.core.types as core_types


class LLMProvider(_abc.ABC):
    """
    Abstract base for model providers.

    Implementations handle the specifics of each provider's API while
    presenting a unified streaming interface.
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'openrouter', 'ollama')."""
        ...

    @property
    @_abc.abstractmethod
    def model(self) -> str:
        """Current model being used."""
        ...

    def supports_tools(self) -> bool:
        """Whether this provider/model supports tool use."""
        return True

    @_abc.abstractmethod
    def stream(
        self,
        turns: list[core_types.Turn],
        tools: list[types.ToolSchema] | None,
        options: types.GenerateOptions,
    ) -> _typing.AsyncIterator[types.StreamEvent]:
        """
        Stream one model turn.

        Args:
            turns: The prompt, system turn first when a system prompt is set.
            tools: Tool schemas the model may call (None disables tools).
            options: Effective generation options for this request.

        Yields:
            StreamEvents, ending with a ``message_stop`` marker.
        """
        ...
