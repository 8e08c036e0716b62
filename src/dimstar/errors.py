"""Exception types raised across the orchestrator."""

from __future__ import annotations

from typing import Optional


class DimstarError(Exception):
    """Base class for all orchestrator errors."""


class ConfigurationError(DimstarError):
    """Missing credential or invalid configuration. Fatal, never retried."""


class InferenceError(DimstarError):
    """The inference service returned a non-2xx or malformed response."""

    def __init__(self, message: str, model: Optional[str] = None):
        super().__init__(message)
        self.model = model


class UnknownRoleError(DimstarError, ValueError):
    """A role name that is not part of the closed role set."""

    def __init__(self, role: str):
        super().__init__(f"Unknown role: {role}")
        self.role = role


class RunAbortedError(DimstarError):
    """A fatal error aborted an iterative run.

    Carries the round history accumulated before the failure so callers can
    still report partial progress.
    """

    def __init__(self, reason: str, history: Optional[list] = None, rounds: int = 0, call_count: int = 0):
        super().__init__(reason)
        self.reason = reason
        self.history = list(history or [])
        self.rounds = rounds
        self.call_count = call_count
