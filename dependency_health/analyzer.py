"""
Classification engine that turns dependencies into maintenance verdicts.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Tuple

import requests

from .cache import DiskCache
from .config import AnalyzerConfig
from .context import RequestContext
from .errors import CacheError, ProviderError
from .interfaces import RepositoryProvider
from .models import (
    Dependency,
    ModuleInfo,
    Reason,
    RepositoryMetadata,
    ResolutionStatus,
    Verdict,
)
from .module_path import classify_module_path, get_primary_mapping, get_trusted_status
from .providers import ProviderRegistry, build_default_registry
from .resolvers import FallbackResolver
from .retraction import RetractionChecker
from .time_utils import utcnow
from .versions import is_version_outdated


logger = logging.getLogger(__name__)


def error_verdict(dependency: Dependency, error: Exception) -> Verdict:
    """Best-effort verdict for a dependency whose analysis raised."""
    return Verdict(
        package=dependency.path,
        current_version=dependency.version,
        is_direct=not dependency.indirect,
        details=f"Analysis error: {error}",
    )


class DependencyAnalyzer:
    """Classify the maintenance status of individual dependencies."""

    def __init__(
        self,
        config: AnalyzerConfig,
        registry: ProviderRegistry,
        cache: Optional[DiskCache] = None,
        resolver: Optional[FallbackResolver] = None,
        retraction_checker: Optional[RetractionChecker] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the analyzer.

        Args:
            config: Analyzer settings
            registry: Repository providers keyed by host
            cache: Repository metadata cache (built from config if omitted)
            resolver: Fallback resolver for hosts without a provider
            retraction_checker: Retraction lookup, used when enabled in config
            clock: Source of the current time
        """
        self.config = config
        self.registry = registry
        self.cache = cache if cache is not None else DiskCache.from_config(config)
        self.resolver = resolver if resolver is not None else FallbackResolver.from_config(config)
        self.retraction_checker = (
            retraction_checker if retraction_checker is not None else RetractionChecker.from_config(config)
        )
        self.clock = clock

        try:
            removed = self.cache.clean_expired()
            if removed:
                logger.debug("Removed %d expired cache entries", removed)
        except CacheError as e:
            logger.warning("Failed to clean expired cache entries: %s", e)

    @classmethod
    def from_config(
        cls, config: AnalyzerConfig, session: Optional[requests.Session] = None
    ) -> "DependencyAnalyzer":
        """Build an analyzer with the default providers.

        Provider construction errors propagate so the run aborts before any
        dependency is classified.
        """
        session = session or requests.Session()
        registry = build_default_registry(config, session=session)
        return cls(
            config,
            registry,
            cache=DiskCache.from_config(config),
            resolver=FallbackResolver.from_config(config, session=session),
            retraction_checker=RetractionChecker.from_config(config, session=session),
        )

    def module_info(self, path: str) -> ModuleInfo:
        return classify_module_path(
            path,
            primary_host=self.registry.primary_host,
            provider_hosts=self.registry.secondary_hosts,
        )

    def is_cached(self, module_info: ModuleInfo) -> bool:
        if self.cache.disabled or not module_info.owner or not module_info.repo:
            return False
        _, _, hit = self.cache.get(module_info.owner, module_info.repo)
        return hit

    def analyze_dependency(self, ctx: RequestContext, dependency: Dependency) -> Verdict:
        """Classify a single dependency.

        Raises on failures talking to the primary provider; the scheduler
        turns those into error verdicts.
        """
        if dependency.replace is not None:
            return self._base_verdict(dependency, details="Skipped: has replace directive")

        module_info = self.module_info(dependency.path)
        if not module_info.is_valid:
            return self._base_verdict(dependency, details="Invalid module path format")

        verdict = self._route(ctx, dependency, module_info)

        if self.config.check_retractions and dependency.version:
            verdict = self._annotate_retraction(ctx, dependency, verdict)
        return verdict

    def _route(self, ctx: RequestContext, dependency: Dependency, module_info: ModuleInfo) -> Verdict:
        if module_info.is_primary_host:
            return self._analyze_primary(ctx, dependency, module_info)

        mapping = get_primary_mapping(dependency.path)
        if mapping is not None:
            return self._analyze_mirror(ctx, dependency, *mapping)

        trusted_status = get_trusted_status(dependency.path)
        if trusted_status is not None:
            return self._base_verdict(
                dependency, reason=Reason.ACTIVE, details=f"Active {trusted_status} (trusted)"
            )

        provider = self.registry.get(module_info.host)
        if provider is not None:
            return self._analyze_secondary(ctx, dependency, module_info, provider)

        return self._analyze_via_resolver(ctx, dependency, module_info)

    def _analyze_primary(self, ctx: RequestContext, dependency: Dependency, module_info: ModuleInfo) -> Verdict:
        provider = self.registry.primary
        if provider is None:
            raise ProviderError(f"no provider registered for {self.registry.primary_host}")

        metadata, latest_version = self._fetch_with_cache(ctx, provider, module_info.owner, module_info.repo)
        return self.apply_heuristics(dependency, metadata, latest_version)

    def _analyze_mirror(self, ctx: RequestContext, dependency: Dependency, owner: str, repo: str) -> Verdict:
        provider = self.registry.primary
        try:
            if provider is None:
                raise ProviderError(f"no provider registered for {self.registry.primary_host}")
            metadata, latest_version = self._fetch_with_cache(ctx, provider, owner, repo)
        except ProviderError as e:
            return self._base_verdict(dependency, details=f"Failed to fetch Go repository info: {e}")
        return self.apply_heuristics(dependency, metadata, latest_version, source="Go extended package")

    def _analyze_secondary(
        self,
        ctx: RequestContext,
        dependency: Dependency,
        module_info: ModuleInfo,
        provider: RepositoryProvider,
    ) -> Verdict:
        try:
            metadata = provider.fetch_repository_metadata(ctx, module_info.owner, module_info.repo)
        except ProviderError as e:
            return self._base_verdict(
                dependency, details=f"Failed to fetch {module_info.host} repository info: {e}"
            )
        return self.apply_heuristics(dependency, metadata, "", source=provider.name)

    def _analyze_via_resolver(self, ctx: RequestContext, dependency: Dependency, module_info: ModuleInfo) -> Verdict:
        resolved = self.resolver.resolve(ctx, dependency.path)
        provider = resolved.hosting_provider or module_info.host

        if resolved.status is ResolutionStatus.ACTIVE:
            return self._base_verdict(
                dependency,
                reason=Reason.ACTIVE,
                details=f"Active non-GitHub dependency ({provider}): {resolved.details}",
            )
        if resolved.status is ResolutionStatus.NOT_FOUND:
            return self._base_verdict(
                dependency,
                is_unmaintained=True,
                reason=Reason.NOT_FOUND,
                details=f"Module not found: {resolved.details}",
            )
        if resolved.status is ResolutionStatus.UNAVAILABLE:
            return self._base_verdict(
                dependency,
                is_unmaintained=True,
                reason=Reason.UNKNOWN_SOURCE,
                details=f"Module unavailable ({provider}): {resolved.details}",
            )
        return self._base_verdict(
            dependency,
            reason=Reason.UNKNOWN_SOURCE,
            details=f"Unknown status ({provider}): {resolved.details}",
        )

    def _fetch_with_cache(
        self, ctx: RequestContext, provider: RepositoryProvider, owner: str, repo: str
    ) -> Tuple[RepositoryMetadata, str]:
        cached, cached_version, hit = self.cache.get(owner, repo)
        if hit and cached is not None:
            return cached, cached_version

        metadata = provider.fetch_repository_metadata(ctx, owner, repo)

        latest_version = ""
        if self.config.check_outdated and metadata.exists and not metadata.archived:
            try:
                latest_version = provider.fetch_latest_version(ctx, owner, repo)
            except ProviderError as e:
                logger.debug("No latest version for %s/%s: %s", owner, repo, e)

        try:
            self.cache.set(owner, repo, metadata, latest_version)
        except CacheError as e:
            logger.warning("Cache write failed for %s/%s: %s", owner, repo, e)
        return metadata, latest_version

    def apply_heuristics(
        self,
        dependency: Dependency,
        metadata: RepositoryMetadata,
        latest_version: str = "",
        source: str = "",
    ) -> Verdict:
        """Apply the maintenance policy to repository metadata.

        Order: missing, archived, stale, outdated, active. The first match
        decides the verdict.
        """
        days = metadata.days_since_last_activity(self.clock())
        subject = f"{source} repository" if source else "Repository"
        verdict = self._base_verdict(
            dependency,
            repository=metadata,
            days_since_update=days,
            latest_version=latest_version,
        )

        if not metadata.exists:
            return replace(
                verdict, is_unmaintained=True, reason=Reason.NOT_FOUND, details=f"{subject} not found"
            )

        if metadata.archived:
            return replace(
                verdict, is_unmaintained=True, reason=Reason.ARCHIVED, details=f"{subject} is archived"
            )

        if not metadata.is_active(self.config.max_age, self.clock()):
            return replace(
                verdict,
                is_unmaintained=True,
                reason=Reason.STALE_INACTIVE,
                details=f"{subject} inactive for {days} days",
            )

        if (
            self.config.check_outdated
            and latest_version
            and is_version_outdated(dependency.version, latest_version)
        ):
            return replace(
                verdict,
                is_unmaintained=True,
                reason=Reason.OUTDATED,
                details=f"Using outdated version {dependency.version} (latest: {latest_version})",
            )

        active = f"Active {source} repository" if source else "Active repository"
        details = f"{active}, last updated {days} days ago"
        if latest_version:
            details += f" (version: {dependency.version}, latest: {latest_version})"
        return replace(verdict, reason=Reason.ACTIVE, details=details)

    def _annotate_retraction(self, ctx: RequestContext, dependency: Dependency, verdict: Verdict) -> Verdict:
        try:
            info = self.retraction_checker.check(ctx, dependency.path, dependency.version)
        except ProviderError as e:
            logger.debug("Retraction check failed for %s: %s", dependency.path, e)
            return verdict
        if not info.is_retracted:
            return verdict
        return replace(verdict, is_retracted=True, retraction_reason=info.reason)

    def _base_verdict(self, dependency: Dependency, **fields) -> Verdict:
        return Verdict(
            package=dependency.path,
            current_version=dependency.version,
            is_direct=not dependency.indirect,
            **fields,
        )
