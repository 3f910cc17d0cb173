"""Configuration type definitions for Skald settings.

This module defines the Pydantic models used to represent configuration
structures. These are "config section" types nested within the main
Settings class:

- AgentConfig: name, system_prompt, max_iters, validate_messages
- ModelConfig: temperature, max_tokens, request timeout/retry policy
- ToolsConfig: parallel execution, tool timeout/retry policy
- HooksSettings: enabled, config_file
- LoggingConfig: enabled, dir, private, level

Design decision: All types use `extra="allow"` to preserve unknown fields.
This enables auditing a config for typos and unknown keys. Use
`get_extra_fields()` or `collect_all_extra_fields()` to inspect them.
"""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import skald.constants as _constants
import skald.core.policy as policy

# =============================================================================
# Base class with introspection
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for all config types.

    All config types use `extra="allow"` so unknown fields are preserved
    rather than silently dropped. This enables auditing for typos.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Return fields that were provided but not in the schema.

        Returns:
            Dict of field_name → value for all unrecognized fields.
        """
        return dict(self.model_extra) if self.model_extra else {}

    def has_extra_fields(self) -> bool:
        """Check if this config has any unrecognized fields."""
        return bool(self.model_extra)

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect extra fields from this config and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"agent.max_iter": 5, "tools.paralel": False}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            if isinstance(value, ConfigBase):
                child_prefix = f"{prefix}.{field_name}" if prefix else field_name
                result.update(value.collect_all_extra_fields(child_prefix))

        return result


class PolicyFields(ConfigBase):
    """
    Timeout and retry fields shared by the model and tools sections.

    Converted into an ExecutionPolicy with to_policy().
    """

    timeout_seconds: float | None = _pydantic.Field(default=None, gt=0)
    """Per-attempt timeout. None = no timeout."""

    max_attempts: int = _pydantic.Field(default=1, ge=1)
    """Total attempts including the first one."""

    initial_backoff_seconds: float = _pydantic.Field(
        default=_constants.DEFAULT_INITIAL_BACKOFF_SECONDS, ge=0
    )
    max_backoff_seconds: float = _pydantic.Field(
        default=_constants.DEFAULT_MAX_BACKOFF_SECONDS, ge=0
    )
    backoff_multiplier: float = _pydantic.Field(
        default=_constants.DEFAULT_BACKOFF_MULTIPLIER, ge=1
    )

    def to_policy(self) -> policy.ExecutionPolicy:
        return policy.ExecutionPolicy(
            timeout_seconds=self.timeout_seconds,
            max_attempts=self.max_attempts,
            initial_backoff_seconds=self.initial_backoff_seconds,
            max_backoff_seconds=self.max_backoff_seconds,
            backoff_multiplier=self.backoff_multiplier,
        )


# =============================================================================
# Agent Settings
# =============================================================================


class AgentConfig(ConfigBase):
    """
    Agent loop settings.

    YAML section: agent.*
    """

    name: str = _constants.DEFAULT_AGENT_NAME
    """Name stamped on assistant turns."""

    system_prompt: str = ""
    """System prompt sent ahead of the message log."""

    max_iters: int = _pydantic.Field(default=_constants.DEFAULT_MAX_ITERS, ge=0)
    """Reasoning iterations before the loop summarizes. 0 = summarize at once."""

    validate_messages: bool = False
    """Check log structure before every model call."""


# =============================================================================
# Model Settings
# =============================================================================


class ModelConfig(PolicyFields):
    """
    Model request settings.

    YAML section: model.*
    """

    temperature: float | None = _pydantic.Field(default=None, ge=0, le=2)
    """Sampling temperature. None = provider default."""

    max_tokens: int | None = _pydantic.Field(default=None, ge=1)
    """Maximum tokens for completions. None = provider default."""

    timeout_seconds: float | None = _pydantic.Field(
        default=_constants.DEFAULT_MODEL_TIMEOUT_SECONDS, gt=0
    )
    max_attempts: int = _pydantic.Field(default=_constants.DEFAULT_MODEL_MAX_ATTEMPTS, ge=1)


# =============================================================================
# Tool Settings
# =============================================================================


class ToolsConfig(PolicyFields):
    """
    Tool execution settings.

    YAML section: tools.*
    """

    parallel: bool = True
    """Run the tool calls of one response concurrently."""

    timeout_seconds: float | None = _pydantic.Field(
        default=_constants.DEFAULT_TOOL_TIMEOUT_SECONDS, gt=0
    )
    max_attempts: int = _pydantic.Field(default=_constants.DEFAULT_TOOL_MAX_ATTEMPTS, ge=1)

    max_output_chars: int | None = _pydantic.Field(
        default=_constants.DEFAULT_TOOL_RESULT_MAX_CHARS, ge=1
    )
    """Truncate tool output beyond this many characters. None = keep whole."""


# =============================================================================
# Hook Settings
# =============================================================================


class HooksSettings(ConfigBase):
    """
    Hook loading settings.

    YAML section: hooks.*
    """

    enabled: bool = True
    """Load hooks from hooks.yaml files."""

    config_file: _pathlib.Path | None = None
    """Explicit hooks.yaml. None = merge global and project hooks.yaml."""


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingConfig(ConfigBase):
    """
    Logging settings.

    YAML section: logging.*
    """

    enabled: bool = False
    """Enable conversation logging."""

    dir: str | None = None
    """Log directory. None = use default."""

    level: _typing.Literal["debug", "info", "warning", "error"] = "info"
    """Log level."""

    private: bool = True
    """Lock log directory to owner-only (drwx------)."""
