"""
Analyzer configuration.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional


DEFAULT_MAX_AGE_DAYS = 365
DEFAULT_CACHE_TTL_HOURS = 24
DEFAULT_CONCURRENCY = 5
DEFAULT_RESOLVER_TIMEOUT = 10.0
DEFAULT_REQUEST_TIMEOUT = 10.0
CACHE_DIR_NAME = ".dependency-health-cache"


@dataclass(frozen=True)
class AnalyzerConfig:
    """Settings shared by the analyzer, cache, resolver and scheduler."""

    token: str = ""
    max_age_days: int = DEFAULT_MAX_AGE_DAYS
    cache_ttl_hours: float = DEFAULT_CACHE_TTL_HOURS
    cache_dir: Optional[Path] = None
    no_cache: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    sequential: bool = False
    check_outdated: bool = False
    check_retractions: bool = False
    resolver_timeout: float = DEFAULT_RESOLVER_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    show_dep_path: bool = False
    show_progress: bool = False
    verbose: bool = False

    @property
    def max_age(self) -> timedelta:
        return timedelta(days=self.max_age_days)

    @property
    def cache_ttl(self) -> timedelta:
        if self.cache_ttl_hours <= 0:
            return timedelta(hours=DEFAULT_CACHE_TTL_HOURS)
        return timedelta(hours=self.cache_ttl_hours)

    @property
    def primary_concurrency(self) -> int:
        if self.concurrency <= 0:
            return DEFAULT_CONCURRENCY
        return self.concurrency

    @property
    def cached_concurrency(self) -> int:
        return self.primary_concurrency * 2

    @property
    def fallback_concurrency(self) -> int:
        return max(1, self.primary_concurrency // 2)

    def resolved_cache_dir(self) -> Path:
        if self.cache_dir is not None:
            return Path(self.cache_dir)
        return default_cache_dir()


def default_cache_dir() -> Path:
    """Return the per-user cache directory following platform conventions."""
    cache_home = os.environ.get("XDG_CACHE_HOME")
    if cache_home:
        return Path(cache_home) / CACHE_DIR_NAME

    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Caches" / CACHE_DIR_NAME
    return home / ".cache" / CACHE_DIR_NAME
