"""
Interfaces for repository providers and fallback resolution strategies.
"""

from __future__ import annotations

from typing import FrozenSet, Optional, Protocol

from .context import RequestContext
from .models import ModuleInfo, RepositoryMetadata, ResolutionResult


class RepositoryProvider(Protocol):
    """Fetch repository metadata from one hosting platform."""

    name: str
    hosts: FrozenSet[str]

    def fetch_repository_metadata(
        self, ctx: RequestContext, owner: str, repo: str
    ) -> RepositoryMetadata:
        ...

    def fetch_latest_version(self, ctx: RequestContext, owner: str, repo: str) -> str:
        ...


class ResolutionStrategy(Protocol):
    """One step of the fallback chain for modules without a provider."""

    name: str

    def attempt(
        self, ctx: RequestContext, module_path: str, module_info: ModuleInfo
    ) -> Optional[ResolutionResult]:
        ...
