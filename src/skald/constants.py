"""
Shared constants for Skald.

This module provides a single source of truth for default values
that are used across multiple modules.
"""

# Agent defaults
DEFAULT_AGENT_NAME = "assistant"
"""Name stamped on assistant turns produced by the controller."""

DEFAULT_MAX_ITERS = 10
"""Default number of reasoning iterations before the loop summarizes."""

# Model execution defaults
DEFAULT_MODEL_TIMEOUT_SECONDS = 300.0
"""Timeout for a single model request (5 minutes)."""

DEFAULT_MODEL_MAX_ATTEMPTS = 3
"""Model requests: initial attempt plus two retries."""

# Tool execution defaults
DEFAULT_TOOL_TIMEOUT_SECONDS = 300.0
"""Timeout for a single tool call (5 minutes)."""

DEFAULT_TOOL_MAX_ATTEMPTS = 1
"""Tool calls are not retried by default."""

DEFAULT_INITIAL_BACKOFF_SECONDS = 1.0
DEFAULT_MAX_BACKOFF_SECONDS = 10.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Hook defaults
DEFAULT_HOOK_PRIORITY = 100
"""Priority for hooks that do not declare one. Lower runs first."""

# Placeholders and directives injected by the loop
SUSPENDED_PLACEHOLDER = "[Awaiting external execution]"
"""Output of a suspended tool outcome when the tool gave no reason."""

FRAGMENT_TOOL_NAME = "__fragment__"
"""Name some providers put on tool-call fragments that only continue arguments."""

SUMMARY_DIRECTIVE = (
    "You have failed to generate response within the maximum iterations. "
    "Now respond directly by summarizing the current situation."
)
"""User turn appended to the prompt when the iteration budget is exhausted."""

INTERRUPT_RECOVERY_TEXT = "I noticed that you have interrupted me. What can I do for you?"
"""Assistant turn closing an interrupted response whose tool calls never ran."""

STRUCTURED_OUTPUT_TOOL_NAME = "generate_response"
"""Tool the model calls to deliver a structured response."""

STRUCTURED_OUTPUT_REMINDER = (
    "Please call the 'generate_response' function to provide your response."
)
"""Reminder sent when the model answers without calling generate_response."""

# Truncation limits for LLM context
DEFAULT_TOOL_RESULT_MAX_CHARS = 50_000
"""Maximum characters for a tool outcome in the conversation log.

Tool output exceeding this limit is truncated before being added to
the log. This prevents runaway tool output from exceeding the model's
context window.
"""
