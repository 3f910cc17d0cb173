"""
Execution policy: timeout and retry settings for model and tool calls.

The controller never retries anything itself. It hands a policy to whoever
performs the I/O (the tool executor, or the transport via GenerateOptions)
and they apply it.
"""

from __future__ import annotations

import typing as _typing

import pydantic as _pydantic

import skald.constants as _constants


def _retry_everything(exc: BaseException) -> bool:  # noqa: ARG001
    return True


class ExecutionPolicy(_pydantic.BaseModel):
    """
    Timeout and retry configuration for one kind of call.

    Fields set to None inherit from the policy this one is merged over, so a
    partial policy (e.g. a per-request timeout override) can be layered on
    top of the defaults with merge().
    """

    model_config = _pydantic.ConfigDict(frozen=True, arbitrary_types_allowed=True)

    timeout_seconds: float | None = _pydantic.Field(default=None, gt=0)
    """Per-attempt timeout. None means no timeout once merged."""

    max_attempts: int | None = _pydantic.Field(default=None, ge=1)
    """Total attempts including the first one."""

    initial_backoff_seconds: float | None = _pydantic.Field(default=None, ge=0)
    max_backoff_seconds: float | None = _pydantic.Field(default=None, ge=0)
    backoff_multiplier: float | None = _pydantic.Field(default=None, ge=1)

    retry_on: _typing.Callable[[BaseException], bool] | None = _pydantic.Field(
        default=None, exclude=True
    )
    """Predicate deciding whether a failure is worth another attempt."""

    @property
    def attempts(self) -> int:
        return self.max_attempts or 1

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        """
        Decide whether to retry after a failed attempt.

        Args:
            exc: The failure of the attempt.
            attempt: 1-based number of the attempt that failed.
        """
        if attempt >= self.attempts:
            return False
        predicate = self.retry_on or _retry_everything
        return predicate(exc)

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay before the attempt following ``attempt`` (1-based).

        Exponential: initial * multiplier ** (attempt - 1), capped at the
        maximum backoff.
        """
        initial = (
            self.initial_backoff_seconds
            if self.initial_backoff_seconds is not None
            else _constants.DEFAULT_INITIAL_BACKOFF_SECONDS
        )
        multiplier = (
            self.backoff_multiplier
            if self.backoff_multiplier is not None
            else _constants.DEFAULT_BACKOFF_MULTIPLIER
        )
        cap = (
            self.max_backoff_seconds
            if self.max_backoff_seconds is not None
            else _constants.DEFAULT_MAX_BACKOFF_SECONDS
        )
        delay: float = initial * (multiplier ** max(attempt - 1, 0))
        return min(delay, cap)


def merge(
    primary: ExecutionPolicy | None,
    fallback: ExecutionPolicy | None,
) -> ExecutionPolicy:
    """
    Merge two policies field by field.

    Args:
        primary: Policy whose set fields win.
        fallback: Policy supplying the fields ``primary`` leaves unset.

    Returns:
        A new policy. Either argument may be None.
    """
    if primary is None and fallback is None:
        return ExecutionPolicy()
    if primary is None:
        return fallback  # type: ignore[return-value]
    if fallback is None:
        return primary

    values: dict[str, _typing.Any] = {}
    for field_name in ExecutionPolicy.model_fields:
        value = getattr(primary, field_name)
        if value is None:
            value = getattr(fallback, field_name)
        values[field_name] = value
    return ExecutionPolicy(**values)


MODEL_DEFAULTS = ExecutionPolicy(
    timeout_seconds=_constants.DEFAULT_MODEL_TIMEOUT_SECONDS,
    max_attempts=_constants.DEFAULT_MODEL_MAX_ATTEMPTS,
    initial_backoff_seconds=_constants.DEFAULT_INITIAL_BACKOFF_SECONDS,
    max_backoff_seconds=_constants.DEFAULT_MAX_BACKOFF_SECONDS,
    backoff_multiplier=_constants.DEFAULT_BACKOFF_MULTIPLIER,
)
"""Defaults for model requests: 5 minute timeout, 3 attempts."""

TOOL_DEFAULTS = ExecutionPolicy(
    timeout_seconds=_constants.DEFAULT_TOOL_TIMEOUT_SECONDS,
    max_attempts=_constants.DEFAULT_TOOL_MAX_ATTEMPTS,
    initial_backoff_seconds=_constants.DEFAULT_INITIAL_BACKOFF_SECONDS,
    max_backoff_seconds=_constants.DEFAULT_MAX_BACKOFF_SECONDS,
    backoff_multiplier=_constants.DEFAULT_BACKOFF_MULTIPLIER,
)
"""Defaults for tool calls: 5 minute timeout, no retry."""


def backoff_delay(policy: ExecutionPolicy, attempt: int) -> float:
    """Module-level shorthand for ``policy.backoff_delay(attempt)``."""
    return policy.backoff_delay(attempt)
