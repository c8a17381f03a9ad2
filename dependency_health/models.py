"""
Core data models for dependency maintenance analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .time_utils import days_between, ensure_utc, format_timestamp, parse_timestamp, utcnow


@dataclass(frozen=True)
class Replace:
    """A replace directive attached to a dependency."""

    old_path: str
    new_path: str
    version: str = ""


@dataclass(frozen=True)
class Dependency:
    """A single declared dependency of a module."""

    path: str
    version: str = ""
    indirect: bool = False
    replace: Optional[Replace] = None


@dataclass(frozen=True)
class Module:
    """A parsed go.mod manifest."""

    path: str
    go_version: str = ""
    project_path: str = "."
    dependencies: Tuple[Dependency, ...] = ()
    replaces: Tuple[Replace, ...] = ()


@dataclass(frozen=True)
class ModuleInfo:
    """Components derived from a module import path."""

    host: str = ""
    owner: str = ""
    repo: str = ""
    is_primary_host: bool = False
    is_known_host: bool = False
    is_valid: bool = False


@dataclass(frozen=True)
class RepositoryMetadata:
    """Hosting-provider-agnostic repository information.

    When ``exists`` is False every other field is left at its zero value and
    must not be interpreted.
    """

    exists: bool = False
    archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_commit_at: Optional[datetime] = None
    url: str = ""
    description: str = ""
    default_branch: str = ""

    @property
    def last_activity(self) -> Optional[datetime]:
        """Latest of the update timestamp and the last commit timestamp."""
        latest = ensure_utc(self.updated_at) if self.updated_at is not None else None
        if self.last_commit_at is not None:
            commit = ensure_utc(self.last_commit_at)
            if latest is None or commit > latest:
                latest = commit
        return latest

    def is_active(self, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        if not self.exists:
            return False
        latest = self.last_activity
        if latest is None:
            return False
        now = ensure_utc(now) if now else utcnow()
        return now - ensure_utc(latest) <= max_age

    def days_since_last_activity(self, now: Optional[datetime] = None) -> int:
        """Whole days since the last activity, or -1 if the repository is missing."""
        if not self.exists:
            return -1
        latest = self.last_activity
        if latest is None:
            return -1
        return days_between(latest, now or utcnow())

    def to_dict(self) -> Dict:
        return {
            "exists": self.exists,
            "archived": self.archived,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "last_commit_at": format_timestamp(self.last_commit_at),
            "url": self.url,
            "description": self.description,
            "default_branch": self.default_branch,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RepositoryMetadata":
        return cls(
            exists=bool(data.get("exists", False)),
            archived=bool(data.get("archived", False)),
            created_at=parse_timestamp(data.get("created_at") or ""),
            updated_at=parse_timestamp(data.get("updated_at") or ""),
            last_commit_at=parse_timestamp(data.get("last_commit_at") or ""),
            url=data.get("url") or "",
            description=data.get("description") or "",
            default_branch=data.get("default_branch") or "",
        )


@dataclass(frozen=True)
class CacheEntry:
    """A cached repository snapshot plus the latest known version."""

    metadata: RepositoryMetadata
    timestamp: datetime
    latest_version: str = ""

    def to_dict(self) -> Dict:
        return {
            "repo_info": self.metadata.to_dict(),
            "timestamp": format_timestamp(self.timestamp),
            "latest_version": self.latest_version,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CacheEntry":
        timestamp = parse_timestamp(data.get("timestamp") or "")
        if timestamp is None:
            raise ValueError("cache entry has no timestamp")
        return cls(
            metadata=RepositoryMetadata.from_dict(data.get("repo_info") or {}),
            timestamp=timestamp,
            latest_version=data.get("latest_version") or "",
        )


class ResolutionStatus(str, Enum):
    ACTIVE = "active"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    REDIRECT = "redirect"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ResolutionResult:
    """Best-effort status of a module that has no metadata provider."""

    module_path: str
    status: ResolutionStatus = ResolutionStatus.UNKNOWN
    hosting_provider: str = ""
    details: str = ""
    actual_url: str = ""

    @property
    def is_redirect(self) -> bool:
        return self.status is ResolutionStatus.REDIRECT


@dataclass(frozen=True)
class RetractionRange:
    """A single retract directive; ``low == high`` for one version."""

    low: str
    high: str
    reason: str = ""


@dataclass(frozen=True)
class RetractionInfo:
    is_retracted: bool = False
    reason: str = ""
    ranges: Tuple[RetractionRange, ...] = ()


class Reason(str, Enum):
    """Why a dependency was classified the way it was."""

    ARCHIVED = "repository_archived"
    NOT_FOUND = "package_not_found"
    STALE_INACTIVE = "stale_dependencies_inactive_repo"
    OUTDATED = "outdated_version"
    UNKNOWN_SOURCE = "unknown_source"
    ACTIVE = "active_maintained"


@dataclass(frozen=True)
class Verdict:
    """Classification result for one dependency."""

    package: str
    is_unmaintained: bool = False
    reason: Optional[Reason] = None
    details: str = ""
    current_version: str = ""
    latest_version: str = ""
    days_since_update: int = 0
    is_direct: bool = True
    dependency_path: Tuple[str, ...] = ()
    is_retracted: bool = False
    retraction_reason: str = ""
    repository: Optional[RepositoryMetadata] = None

    def to_dict(self) -> Dict:
        data = {
            "package": self.package,
            "is_unmaintained": self.is_unmaintained,
            "is_direct": self.is_direct,
            "reason": self.reason.value if self.reason else "",
            "details": self.details,
            "current_version": self.current_version,
            "latest_version": self.latest_version,
            "days_since_update": self.days_since_update,
            "dependency_path": list(self.dependency_path),
            "is_retracted": self.is_retracted,
            "retraction_reason": self.retraction_reason,
        }
        if self.repository is not None:
            data["repo_info"] = {
                "url": self.repository.url,
                "is_archived": self.repository.archived,
                "created_at": format_timestamp(self.repository.created_at),
                "updated_at": format_timestamp(self.repository.updated_at),
                "last_commit_at": format_timestamp(self.repository.last_commit_at),
            }
        return data


@dataclass(frozen=True)
class SummaryStats:
    total_dependencies: int = 0
    unmaintained_count: int = 0
    direct_unmaintained: int = 0
    indirect_unmaintained: int = 0
    archived_count: int = 0
    not_found_count: int = 0
    stale_inactive_count: int = 0
    outdated_count: int = 0
    unknown_count: int = 0
    retracted_count: int = 0

    @property
    def maintained_count(self) -> int:
        return self.total_dependencies - self.unmaintained_count - self.unknown_count


def summarize(verdicts: List[Verdict]) -> SummaryStats:
    """Reduce a list of verdicts to aggregate counts."""
    counts: Dict[str, int] = {
        "unmaintained_count": 0,
        "direct_unmaintained": 0,
        "indirect_unmaintained": 0,
        "archived_count": 0,
        "not_found_count": 0,
        "stale_inactive_count": 0,
        "outdated_count": 0,
        "unknown_count": 0,
        "retracted_count": 0,
    }
    by_reason = {
        Reason.ARCHIVED: "archived_count",
        Reason.NOT_FOUND: "not_found_count",
        Reason.STALE_INACTIVE: "stale_inactive_count",
        Reason.OUTDATED: "outdated_count",
    }

    for verdict in verdicts:
        if verdict.is_unmaintained:
            counts["unmaintained_count"] += 1
            if verdict.is_direct:
                counts["direct_unmaintained"] += 1
            else:
                counts["indirect_unmaintained"] += 1
            key = by_reason.get(verdict.reason)
            if key:
                counts[key] += 1
        elif verdict.reason is Reason.UNKNOWN_SOURCE:
            counts["unknown_count"] += 1

        # Retracted versions are counted whether or not they are maintained
        if verdict.is_retracted:
            counts["retracted_count"] += 1

    return SummaryStats(total_dependencies=len(verdicts), **counts)
