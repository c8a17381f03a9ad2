"""
Cancellation and deadline propagation for network calls.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import OperationCancelled


class RequestContext:
    """Carries an optional deadline and a cancel flag across worker threads.

    Every network call checks the context before issuing a request and clamps
    its own timeout to whatever budget remains. A deadline therefore bounds
    in-flight requests too. An explicit ``cancel()`` stops every request that
    has not started yet; one already in flight finishes or times out within
    its own per-request timeout, after which its unit reports failure.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._deadline = time.monotonic() + timeout if timeout else None
        self._cancelled = threading.Event()

    @classmethod
    def background(cls) -> "RequestContext":
        return cls()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def check(self) -> None:
        if self._cancelled.is_set():
            raise OperationCancelled("operation cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise OperationCancelled("deadline exceeded")

    def timeout(self, default: float) -> float:
        """Per-request timeout bounded by the remaining deadline."""
        self.check()
        remaining = self.remaining()
        if remaining is None:
            return default
        return max(0.001, min(default, remaining))
