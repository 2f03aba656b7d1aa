"""
Error Taxonomy - Failures raised by the embedding and graph engine

WHAT: Named exception types shared by the nn and runtime subsystems
WHERE: neurograph/errors.py - imported by every layer that validates input
WHO: Callers that need to distinguish bad configuration from missing data
TIME: n/a

Validation errors fail fast with a descriptive message. Numeric degeneracies
(zero-norm vectors, mismatched lengths in similarity helpers) are not errors;
those helpers return 0.0 instead.
"""

from __future__ import annotations

from typing import Optional, Sequence


class NeuroGraphError(RuntimeError):
    """Base class for all engine errors."""


class ConfigurationError(NeuroGraphError, ValueError):
    """Raised when a network or service is built with an invalid configuration."""


class DimensionMismatch(NeuroGraphError, ValueError):
    """Raised when a vector length does not match the declared layer size."""

    def __init__(self, message: str, *, expected: Optional[int] = None, actual: Optional[int] = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class NotFoundError(NeuroGraphError, KeyError):
    """Raised when a node, edge, or cached embedding does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class SerializationError(NeuroGraphError):
    """Raised when an embedding blob cannot be decoded."""


class LockError(NeuroGraphError):
    """Raised when shared state cannot be acquired within the allowed time."""

    retryable = True


class TrainingError(NeuroGraphError):
    """Raised when retraining fails part-way through a batch of memory types."""

    def __init__(
        self,
        message: str,
        *,
        failed_type: Optional[str] = None,
        trained_types: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.failed_type = failed_type
        self.trained_types = tuple(trained_types)


__all__ = [
    "NeuroGraphError",
    "ConfigurationError",
    "DimensionMismatch",
    "NotFoundError",
    "SerializationError",
    "LockError",
    "TrainingError",
]
