"""
Configuration module for Skald.

Uses pydantic-settings for environment variable and layered YAML loading.
"""

from skald.config.settings import Settings, find_git_root, find_project_root
from skald.config.sources import ConfigFileError

__all__ = ["ConfigFileError", "Settings", "find_git_root", "find_project_root"]
