"""
CLI module for Skald.

Provides the developer command-line interface using Click.
"""

from skald.cli.main import cli, main

__all__ = ["main", "cli"]
