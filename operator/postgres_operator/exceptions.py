"""Exceptions raised by the PostgresCluster operator.

Every error that crosses a module boundary carries the operation that failed
and the key of the resource it was working on, so that a stuck reconcile can
be diagnosed from the sequence of errors alone.
"""

from typing import Optional


class OperatorError(Exception):
    """Base exception for all operator errors."""

    def __init__(self, message: str, operation: str = "", key: str = ""):
        self.message = message
        self.operation = operation
        self.key = key
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = []
        if self.operation:
            parts.append(self.operation)
        if self.key:
            parts.append(self.key)
        if parts:
            return f"{' '.join(parts)}: {self.message}"
        return self.message


class ConflictError(OperatorError):
    """
    Raised when an optimistic-lock patch finds a newer resourceVersion.

    Always retryable: the caller should observe the resource again and retry.
    """


class NotFoundError(OperatorError):
    """Raised when the target of a request does not exist."""


class UnavailableError(OperatorError):
    """Raised when the Kubernetes API cannot be reached or is overloaded."""


class ApiRequestError(OperatorError):
    """Raised for any other status returned by the Kubernetes API."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        key: str = "",
        status: Optional[int] = None,
    ):
        self.status = status
        super().__init__(message, operation=operation, key=key)


class MalformedSpecError(OperatorError, ValueError):
    """
    Raised for a PostgresCluster spec that can never be reconciled.

    For example a repository without a backend. Not retried.
    """
