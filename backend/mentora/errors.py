"""Exception types raised by the mentora engine.

Malformed persisted data, missing catalog data and out-of-range inputs are
absorbed into defaults or clamped values and never raise. The classes below
cover the remaining programmer-facing failures.
"""

from __future__ import annotations


class MentoraError(Exception):
    """Base class for mentora errors."""


class PersistenceSerializationError(MentoraError):
    """A value handed to the persistence store could not be serialised."""

    def __init__(self, key: str, cause: Exception) -> None:
        super().__init__(f"Value for storage key '{key}' is not JSON serialisable: {cause}")
        self.key = key
        self.cause = cause


class AssessmentStateError(MentoraError):
    """An assessment session transition was requested from the wrong state."""


class SignInError(MentoraError):
    """The demo sign-in form was rejected; ``message`` is safe to display."""

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


__all__ = [
    "AssessmentStateError",
    "MentoraError",
    "PersistenceSerializationError",
    "SignInError",
]
