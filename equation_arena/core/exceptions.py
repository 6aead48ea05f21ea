"""Exception hierarchy for the arena engine.

Game-rule violations are never exceptions: the reducer reports them as
ignored commands and the presentation layer only observes state. The
classes here cover configuration problems, expression parsing (caught
inside the evaluator) and misuse of the state container.
"""

from __future__ import annotations

from typing import Any


class ArenaError(Exception):
    """Base exception for all arena engine errors.

    Attributes:
        message: Human-readable error description.
        details: Additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


class ConfigurationError(ArenaError):
    """Raised when engine settings or content configuration are unusable."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.config_key = config_key
        merged = dict(details or {})
        if config_key:
            merged["config_key"] = config_key
        super().__init__(message, details=merged)


class StoreError(ArenaError):
    """Raised when the state container is used re-entrantly."""


__all__ = [
    "ArenaError",
    "ConfigurationError",
    "StoreError",
]
