"""
Arena Logging - structlog setup for engine events.

Events are short snake_case names with key/value fields:

    logger.info("level_started", mode="solver", level=1, enemy="slime")

configure_logging() is called once by the CLI (or any other host). Until
then structlog's defaults apply, which is what the tests run with.
"""

from __future__ import annotations
from enum import Enum
import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


def enum_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Log GameMode, GameStatus, TimerKey etc. by value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def configure_logging(*, level: str = "INFO", json_format: bool = False) -> None:
    """
    Route engine events to stderr.

    Args:
        level: Minimum level name (DEBUG shows ignored commands).
        json_format: One JSON object per line instead of the console renderer.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,  # session_id
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        enum_values,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach fields (e.g. session_id) to every later event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
