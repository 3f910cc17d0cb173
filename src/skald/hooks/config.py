"""
Hook configuration loading.

Hooks are configured in YAML files:
- Global: ~/.config/skald/hooks.yaml (or $SKALD_CONFIG_DIR/hooks.yaml)
- Project: .skald/hooks.yaml

Global hooks run first, then project hooks. Project hooks with the same
name as global hooks replace them. Priorities still decide the final order.

```yaml
version: 1
hooks:
  - name: require-tools
    target: skald.hooks.builtin:RequireToolCallHook
    priority: 50
    options:
      max_retries: 2
```
"""

from __future__ import annotations

import importlib as _importlib
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import skald.config.sources as config_sources
import skald.core.errors as errors

if _typing.TYPE_CHECKING:
    import skald.hooks.pipeline as pipeline

_logger = _logging.getLogger(__name__)


class HookDefinition(_pydantic.BaseModel):
    """
    Definition of a single hook.

    A hook is any importable factory (usually a class) whose result has an
    async ``on_event`` method.
    """

    model_config = _pydantic.ConfigDict(extra="forbid")

    name: str
    """Unique identifier for this hook."""

    target: str
    """Import path of the hook factory, as ``package.module:attribute``."""

    priority: int | None = None
    """Overrides the hook's own priority. Lower runs first."""

    enabled: bool = True
    """Whether this hook is enabled."""

    options: dict[str, _typing.Any] = _pydantic.Field(default_factory=dict)
    """Keyword arguments passed to the factory."""

    @_pydantic.field_validator("target")
    @classmethod
    def _validate_target(cls, value: str) -> str:
        module_name, sep, attr = value.partition(":")
        if not sep or not module_name or not attr:
            raise ValueError(f"target must look like 'package.module:attribute', got {value!r}")
        return value


class HooksConfig(_pydantic.BaseModel):
    """Complete hooks configuration from a hooks.yaml file."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    version: int = 1
    """Config version (for future compatibility)."""

    hooks: list[HookDefinition] = _pydantic.Field(default_factory=list)

    @_pydantic.model_validator(mode="after")
    def _validate_unique_names(self) -> HooksConfig:
        names = [h.name for h in self.hooks]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate hook names: {', '.join(duplicates)}")
        return self

    def enabled_hooks(self) -> list[HookDefinition]:
        return [h for h in self.hooks if h.enabled]


def load_hooks_yaml(path: _pathlib.Path) -> HooksConfig:
    """
    Load hooks configuration from a YAML file.

    Args:
        path: Path to hooks.yaml file.

    Returns:
        Parsed HooksConfig.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Hooks config not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = _yaml.safe_load(content) or {}
        return HooksConfig.model_validate(data)
    except _yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid hooks config in {path}: {e}") from e


def get_global_hooks_path() -> _pathlib.Path:
    """Get the path to global hooks config."""
    return config_sources.get_user_config_dir() / "hooks.yaml"


def get_project_hooks_path(project_root: _pathlib.Path) -> _pathlib.Path:
    """Get the path to project-local hooks config."""
    return project_root / ".skald" / "hooks.yaml"


def load_merged_config(
    project_root: _pathlib.Path | None = None,
) -> HooksConfig:
    """
    Load and merge global and project hooks configs.

    Args:
        project_root: Project root directory. If None, only global hooks
                      are loaded.

    Returns:
        Merged HooksConfig.

    Raises:
        ValueError: If either file is invalid.
    """
    merged: list[HookDefinition] = []

    global_path = get_global_hooks_path()
    if global_path.exists():
        merged.extend(load_hooks_yaml(global_path).hooks)

    if project_root is not None:
        project_path = get_project_hooks_path(project_root)
        if project_path.exists():
            for hook in load_hooks_yaml(project_path).hooks:
                existing = [i for i, h in enumerate(merged) if h.name == hook.name]
                if existing:
                    # Replace existing hook with same name
                    merged[existing[0]] = hook
                else:
                    merged.append(hook)

    return HooksConfig(hooks=merged)


def resolve_target(target: str) -> _typing.Any:
    """
    Import the object named by a ``module:attribute`` path.

    Raises:
        HookLoadError: If the module or attribute cannot be found.
    """
    module_name, _, attr_path = target.partition(":")
    try:
        obj: _typing.Any = _importlib.import_module(module_name)
    except ImportError as e:
        raise errors.HookLoadError(f"Cannot import module {module_name!r}: {e}") from e

    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise errors.HookLoadError(
                f"Module {module_name!r} has no attribute {attr_path!r}"
            ) from e
    return obj


def build_hook(definition: HookDefinition) -> pipeline.Hook:
    """
    Instantiate one configured hook.

    Raises:
        HookLoadError: If the target cannot be imported or instantiated, or
            the result has no ``on_event`` method.
    """
    factory = resolve_target(definition.target)
    if not callable(factory):
        raise errors.HookLoadError(
            f"Hook {definition.name}: target {definition.target!r} is not callable"
        )

    try:
        hook = factory(**definition.options)
    except Exception as e:
        raise errors.HookLoadError(
            f"Hook {definition.name}: cannot instantiate {definition.target!r}: {e}"
        ) from e

    if not callable(getattr(hook, "on_event", None)):
        raise errors.HookLoadError(
            f"Hook {definition.name}: {definition.target!r} does not provide on_event()"
        )

    hook.name = definition.name
    if definition.priority is not None:
        hook.priority = definition.priority
    return hook  # type: ignore[no-any-return]


def load_hooks(hooks_config: HooksConfig) -> list[pipeline.Hook]:
    """
    Instantiate every enabled hook of a configuration.

    Returns:
        Hooks in configuration order (the pipeline sorts them by priority).

    Raises:
        HookLoadError: On the first hook that cannot be built.
    """
    hooks = []
    for definition in hooks_config.enabled_hooks():
        hooks.append(build_hook(definition))
        _logger.debug("Loaded hook %s from %s", definition.name, definition.target)
    return hooks
