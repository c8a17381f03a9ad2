"""
Exception types raised by the analyzer and its collaborators.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional


class DependencyHealthError(Exception):
    """Base class for all errors raised by this package."""


class ProviderError(DependencyHealthError):
    """A repository metadata provider could not answer a request."""


class AuthenticationError(ProviderError):
    """The provider rejected the supplied credential."""


class RateLimitError(ProviderError):
    """The provider's API quota is exhausted."""

    def __init__(
        self,
        message: str,
        remaining: Optional[int] = 0,
        reset_at: Optional[datetime] = None,
    ) -> None:
        if reset_at is not None:
            message = f"{message} (resets at {reset_at.isoformat()})"
        super().__init__(message)
        self.remaining = remaining
        self.reset_at = reset_at


class CacheError(DependencyHealthError):
    """Reading or writing the on-disk cache failed."""


class OperationCancelled(DependencyHealthError):
    """The caller cancelled the run or its deadline passed."""
