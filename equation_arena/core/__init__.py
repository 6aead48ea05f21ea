"""Core infrastructure - logging, exceptions and engine settings."""

from .exceptions import ArenaError, ConfigurationError, StoreError
from .logging import configure_logging, get_logger, bind_context, clear_context
from .settings import EngineSettings, IceEffect

__all__ = [
    "ArenaError",
    "ConfigurationError",
    "StoreError",
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "EngineSettings",
    "IceEffect",
]
