"""Exceptions raised by the diagram core."""

from __future__ import annotations


class DiagramError(Exception):
    """Base class for diagram errors."""


class InvalidEndpoint(DiagramError):
    """Raised when a connection references a missing or disallowed cell pair."""


class PersistenceFailure(DiagramError):
    """Raised when loading or saving a diagram fails.

    The in-memory diagram is never discarded on this failure, so the
    operation can be retried.
    """

    def __init__(self, message: str, project_id: str = "", retryable: bool = True):
        super().__init__(message)
        self.project_id = project_id
        self.retryable = retryable
