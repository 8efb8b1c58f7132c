"""Top-level package for the organisation deduplication engine."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("orgdedup")
except PackageNotFoundError:  # pragma: no cover - fallback during local development
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import (
    DataConflict,
    DataSourceReference,
    MergeRecord,
    Organisation,
    RunWarning,
)

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Organisation",
    "DataSourceReference",
    "DataConflict",
    "MergeRecord",
    "RunWarning",
]
