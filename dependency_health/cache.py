"""
Persistent on-disk cache of repository metadata.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Optional, Tuple

from .config import AnalyzerConfig, DEFAULT_CACHE_TTL_HOURS
from .errors import CacheError
from .models import CacheEntry, RepositoryMetadata
from .time_utils import utcnow


logger = logging.getLogger(__name__)


class DiskCache:
    """TTL-bounded store mapping (owner, repo) to repository metadata.

    Each entry lives in its own JSON file named by the SHA-256 of the key.
    Expiry is enforced when an entry is read; ``clean_expired`` sweeps the
    directory on demand. A disabled cache always misses and never errors.
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        ttl: timedelta = timedelta(hours=DEFAULT_CACHE_TTL_HOURS),
        disabled: bool = False,
    ) -> None:
        self.disabled = disabled
        self.ttl = ttl
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None

        if self.disabled:
            return
        if self.cache_dir is None:
            raise CacheError("cache directory is required when the cache is enabled")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"failed to create cache directory {self.cache_dir}: {e}") from e

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "DiskCache":
        if config.no_cache:
            return cls(disabled=True)
        return cls(cache_dir=config.resolved_cache_dir(), ttl=config.cache_ttl)

    def get(self, owner: str, repo: str) -> Tuple[Optional[RepositoryMetadata], str, bool]:
        """Return ``(metadata, latest_version, hit)``."""
        if self.disabled:
            return None, "", False

        file_path = self._file_path(owner, repo)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
            entry = CacheEntry.from_dict(data)
        except FileNotFoundError:
            return None, "", False
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.debug("Ignoring unreadable cache entry %s: %s", file_path, e)
            return None, "", False

        if utcnow() - entry.timestamp > self.ttl:
            logger.debug("Cache expired: %s/%s", owner, repo)
            try:
                file_path.unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Could not remove expired cache entry %s: %s", file_path, e)
            return None, "", False

        logger.debug("Cache hit: %s/%s", owner, repo)
        return entry.metadata, entry.latest_version, True

    def set(self, owner: str, repo: str, metadata: RepositoryMetadata, latest_version: str = "") -> None:
        if self.disabled:
            return

        entry = CacheEntry(metadata=metadata, timestamp=utcnow(), latest_version=latest_version)
        file_path = self._file_path(owner, repo)
        tmp_path = file_path.with_name(f"{file_path.stem}.{threading.get_ident()}.tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(entry.to_dict()), encoding="utf-8")
            tmp_path.replace(file_path)
        except OSError as e:
            raise CacheError(f"failed to write cache entry for {owner}/{repo}: {e}") from e

    def clear(self) -> None:
        """Remove the whole cache directory."""
        if self.disabled:
            return
        try:
            shutil.rmtree(self.cache_dir, ignore_errors=False)
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheError(f"failed to clear cache {self.cache_dir}: {e}") from e

    def clean_expired(self) -> int:
        """Delete entries whose file age exceeds the TTL; returns the count removed."""
        if self.disabled:
            return 0

        removed = 0
        now = time.time()
        ttl_seconds = self.ttl.total_seconds()
        try:
            paths = list(self.cache_dir.iterdir())
        except OSError as e:
            raise CacheError(f"failed to list cache {self.cache_dir}: {e}") from e

        for path in paths:
            if not path.is_file():
                continue
            try:
                if now - path.stat().st_mtime > ttl_seconds:
                    path.unlink()
                    removed += 1
            except OSError:
                continue
        return removed

    def stats(self) -> int:
        """Number of entries currently on disk."""
        if self.disabled or not self.cache_dir.exists():
            return 0
        return sum(1 for path in self.cache_dir.glob("*.json") if path.is_file())

    def _file_path(self, owner: str, repo: str) -> Path:
        key = f"{owner}_{repo}"
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.json"
