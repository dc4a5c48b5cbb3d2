"""Exceptions raised by the tome runtime."""

from __future__ import annotations


class TomeError(Exception):
    """Base class for every error raised by a Tome."""


class NotReadyError(TomeError):
    """Raised when a Tome is read or mutated before its initial state is set."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Attempted to {action} a tome without initial state.")
        self.action = action


class TomeConfigError(TomeError, ValueError):
    """Raised when keep/sort options cannot be honoured."""


__all__ = ["NotReadyError", "TomeConfigError", "TomeError"]
