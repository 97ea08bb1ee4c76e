"""Error kinds raised by the failover engine."""

from __future__ import annotations

from typing import Optional


class FailoverError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(FailoverError, ValueError):
    """Missing or malformed configuration detected at startup."""


class RemoteAPIError(FailoverError):
    """The server control panel call failed or returned garbage."""


class DeadlineExceeded(FailoverError):
    """The caller's deadline elapsed before the call could be issued."""


class ClusterAPIError(FailoverError):
    """A Kubernetes read or patch failed."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ConflictError(ClusterAPIError):
    """A patch was rejected because the observed object was stale."""


class NotFoundError(ClusterAPIError):
    """The referenced object does not exist (any more)."""
