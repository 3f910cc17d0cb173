"""
Skald - a reasoning/acting agent loop.

Streams a model's reasoning, executes the tools it asks for, and resumes the
cycle, with hooks at every phase boundary and human-in-the-loop suspension.
Named after the Norse poets who carried the sagas.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("skald")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)
__author__ = "Skald Contributors"

from skald.config import Settings  # noqa: E402
from skald.core import (  # noqa: E402
    GenerateReason,
    InMemoryMessageLog,
    ReActController,
    Role,
    Turn,
)

__all__ = [
    "__version__",
    "__version_info__",
    "GenerateReason",
    "InMemoryMessageLog",
    "ReActController",
    "Role",
    "Settings",
    "Turn",
]
