"""Shared library modules for dev-prism."""

from devprism.lib.config import Settings, get_settings
from devprism.lib.errors import (
    ConfigError,
    ConflictError,
    DevPrismError,
    ExternalProcessError,
    NotFoundError,
    ValidationError,
)
from devprism.lib.logging import get_logger

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "DevPrismError",
    "ValidationError",
    "ConfigError",
    "NotFoundError",
    "ConflictError",
    "ExternalProcessError",
]
