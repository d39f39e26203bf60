"""
Configuration module for pkgsrc.

Exports the main components for convenient imports.
"""

from .loader import MissingRootError, load_config, require_root
from .schema import (
    AppConfig,
    BuildConfig,
    LoggingConfig,
    SearchConfig,
    TreeConfig,
)

__all__ = [
    "load_config",
    "require_root",
    "MissingRootError",
    "AppConfig",
    "BuildConfig",
    "LoggingConfig",
    "SearchConfig",
    "TreeConfig",
]
