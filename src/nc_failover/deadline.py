"""Caller supplied deadlines for blocking remote calls."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from .errors import DeadlineExceeded


@dataclass(frozen=True)
class Deadline:
    """Absolute point in (monotonic) time after which calls must not start."""

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self, operation: str) -> None:
        if self.expired():
            raise DeadlineExceeded(f"deadline exceeded before {operation}")


def timeout_for(deadline: Optional[Deadline], default: float, operation: str) -> float:
    """Return the timeout to use for ``operation``.

    Raises :class:`DeadlineExceeded` when ``deadline`` has already elapsed.
    """

    if deadline is None:
        return default
    deadline.check(operation)
    return min(default, deadline.remaining())
