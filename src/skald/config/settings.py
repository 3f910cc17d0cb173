"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with SKALD_ prefix
3. .env file (if SKALD_ENV_FILE points at one)
4. Layered YAML config files:
   - Project config: .skald/config.yaml (highest)
   - User config: ~/.config/skald/config.yaml
5. Field defaults (lowest)

Nested config uses double underscore delimiter:
  SKALD_AGENT__MAX_ITERS=20
  SKALD_TOOLS__PARALLEL=false
"""

import os as _os
import pathlib as _pathlib
import subprocess as _subprocess
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import skald.config.sources as sources
import skald.config.types as types


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    Only an explicit SKALD_ENV_FILE is honored; if it is set but missing,
    no .env is loaded rather than falling back to another one.
    """
    if env_file := _os.environ.get("SKALD_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def find_git_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path | None:
    """Find the git repository root from the given path or current directory."""
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    try:
        result = _subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            cwd=start_path,
            timeout=5,
        )
        if result.returncode == 0:
            return _pathlib.Path(result.stdout.strip())
    except (_subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass
    return None


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path:
    """
    Find the project root directory.

    Tries (in order):
    1. Git repository root
    2. Nearest directory containing .skald/, pyproject.toml or setup.py
    3. The start directory
    """
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    git_root = find_git_root(start_path)
    if git_root:
        return git_root

    markers = [sources.PROJECT_CONFIG_DIRNAME, "pyproject.toml", "setup.py", "setup.cfg"]
    current = start_path.resolve()
    while current != current.parent:
        if any((current / marker).exists() for marker in markers):
            return current
        current = current.parent

    return start_path


class Settings(_pydantic_settings.BaseSettings):
    """
    Skald configuration settings.

    All settings can be overridden via environment variables with SKALD_ prefix.
    For nested config, use double underscore: SKALD_AGENT__MAX_ITERS=20

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (SKALD_*)
    3. .env file
    4. Project config (.skald/config.yaml)
    5. User config (~/.config/skald/config.yaml)
    6. Field defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="SKALD_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",  # SKALD_AGENT__MAX_ITERS
        extra="allow",  # Preserve unknown fields for the extra-field audit
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args), highest
        2. env_settings (SKALD_* env vars)
        3. dotenv_settings (.env file)
        4. layered YAML (project, then user config.yaml)
        5. (defaults via Field definitions), lowest
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, find_project_root()),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for:
        - Test isolation (prevent .env from polluting tests)
        - CI/CD environments (pure env var config)
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    # =========================================================================
    # Config version (for future migrations)
    # =========================================================================

    version: int = _pydantic.Field(default=1, description="Config schema version")

    # =========================================================================
    # Nested config sections
    # =========================================================================

    agent: types.AgentConfig = _pydantic.Field(default_factory=types.AgentConfig)
    """Agent loop settings (name, system prompt, iteration budget)."""

    model: types.ModelConfig = _pydantic.Field(default_factory=types.ModelConfig)
    """Model request settings (sampling, timeout/retry policy)."""

    tools: types.ToolsConfig = _pydantic.Field(default_factory=types.ToolsConfig)
    """Tool execution settings."""

    hooks: types.HooksSettings = _pydantic.Field(default_factory=types.HooksSettings)
    """Hook loading settings."""

    logging: types.LoggingConfig = _pydantic.Field(default_factory=types.LoggingConfig)
    """Logging settings."""

    # =========================================================================
    # Directory settings (computed at runtime)
    # =========================================================================

    @property
    def config_dir(self) -> _pathlib.Path:
        """User configuration directory (~/.config/skald/)."""
        return sources.get_user_config_dir()

    @property
    def project_root(self) -> _pathlib.Path:
        """Project root directory (git root or cwd)."""
        return find_project_root()

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Get unknown fields at the top level of Settings."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(self) -> dict[str, _typing.Any]:
        """
        Recursively collect all extra fields from Settings and nested configs.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"agent.max_iter": 5, "loging": {...}}
        """
        result = self.get_extra_fields()
        for field_name in ["agent", "model", "tools", "hooks", "logging"]:
            nested: types.ConfigBase = getattr(self, field_name)
            result.update(nested.collect_all_extra_fields(prefix=field_name))
        return result

    def has_extra_fields(self) -> bool:
        """Check if there are any unknown fields anywhere in the config."""
        return bool(self.collect_all_extra_fields())

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert settings to dictionary (for JSON output)."""
        data = self.model_dump(
            mode="json",
            include={"version", "agent", "model", "tools", "hooks", "logging"},
        )
        data["config_dir"] = str(self.config_dir)
        data["project_root"] = str(self.project_root)
        return data
