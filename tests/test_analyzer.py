from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dependency_health.analyzer import DependencyAnalyzer, error_verdict
from dependency_health.cache import DiskCache
from dependency_health.config import AnalyzerConfig
from dependency_health.context import RequestContext
from dependency_health.errors import CacheError, ProviderError
from dependency_health.models import (
    Dependency,
    Reason,
    Replace,
    RepositoryMetadata,
    ResolutionResult,
    ResolutionStatus,
    RetractionInfo,
)
from dependency_health.providers import ProviderRegistry


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class FakeProvider:
    def __init__(self, name="GitHub", hosts=("github.com",), metadata=None, latest="", error=None):
        self.name = name
        self.hosts = frozenset(hosts)
        self.metadata = metadata or {}
        self.latest = latest
        self.error = error
        self.fetches = []
        self.version_fetches = []

    def fetch_repository_metadata(self, ctx, owner, repo):
        self.fetches.append((owner, repo))
        if self.error is not None:
            raise self.error
        return self.metadata.get((owner, repo), RepositoryMetadata(exists=False))

    def fetch_latest_version(self, ctx, owner, repo):
        self.version_fetches.append((owner, repo))
        if not self.latest:
            raise ProviderError("no tags found in repository")
        return self.latest


class FakeResolver:
    def __init__(self, result=None):
        self.result = result
        self.paths = []

    def resolve(self, ctx, module_path):
        self.paths.append(module_path)
        return self.result or ResolutionResult(module_path)


class FakeRetractionChecker:
    def __init__(self, info=None, error=None):
        self.info = info or RetractionInfo()
        self.error = error
        self.calls = []

    def check(self, ctx, module_path, version):
        self.calls.append((module_path, version))
        if self.error is not None:
            raise self.error
        return self.info


def active_repo(days=30, **fields):
    return RepositoryMetadata(exists=True, updated_at=NOW - timedelta(days=days), **fields)


def make_analyzer(providers=(), config=None, cache=None, resolver=None, retraction_checker=None):
    config = config or AnalyzerConfig(token="t", no_cache=True)
    return DependencyAnalyzer(
        config,
        ProviderRegistry(providers),
        cache=cache if cache is not None else DiskCache(disabled=True),
        resolver=resolver or FakeResolver(),
        retraction_checker=retraction_checker or FakeRetractionChecker(),
        clock=lambda: NOW,
    )


def analyze(analyzer, path, version="v1.0.0", **fields):
    return analyzer.analyze_dependency(RequestContext(), Dependency(path, version, **fields))


# Classification heuristics

def test_archived_secondary_provider_repository():
    provider = FakeProvider(
        name="Example",
        hosts=("example.com",),
        metadata={("old", "pkg"): RepositoryMetadata(exists=True, archived=True)},
    )
    verdict = analyze(make_analyzer([provider]), "example.com/old/pkg")

    assert verdict.is_unmaintained
    assert verdict.reason is Reason.ARCHIVED
    assert verdict.details == "Example repository is archived"


def test_recently_updated_repository_is_active():
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(30)})
    verdict = analyze(make_analyzer([provider]), "github.com/owner/repo")

    assert not verdict.is_unmaintained
    assert verdict.reason is Reason.ACTIVE
    assert verdict.days_since_update == 30
    assert verdict.details == "Active repository, last updated 30 days ago"


def test_outdated_version_when_enabled():
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(30)}, latest="v2.0.0")
    config = AnalyzerConfig(token="t", no_cache=True, check_outdated=True)
    verdict = analyze(make_analyzer([provider], config=config), "github.com/owner/repo")

    assert verdict.is_unmaintained
    assert verdict.reason is Reason.OUTDATED
    assert verdict.latest_version == "v2.0.0"
    assert verdict.details == "Using outdated version v1.0.0 (latest: v2.0.0)"


def test_outdated_version_ignored_when_disabled():
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(30)}, latest="v2.0.0")
    verdict = analyze(make_analyzer([provider]), "github.com/owner/repo")

    assert verdict.reason is Reason.ACTIVE
    assert provider.version_fetches == []


def test_missing_repository():
    verdict = analyze(make_analyzer([FakeProvider()]), "github.com/owner/gone")

    assert verdict.is_unmaintained
    assert verdict.reason is Reason.NOT_FOUND
    assert verdict.days_since_update == -1


def test_stale_repository():
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(400)})
    verdict = analyze(make_analyzer([provider]), "github.com/owner/repo")

    assert verdict.reason is Reason.STALE_INACTIVE
    assert verdict.details == "Repository inactive for 400 days"


def test_recent_commit_keeps_repository_active():
    provider = FakeProvider(
        metadata={("owner", "repo"): active_repo(400, last_commit_at=NOW - timedelta(days=5))}
    )
    verdict = analyze(make_analyzer([provider]), "github.com/owner/repo")

    assert verdict.reason is Reason.ACTIVE
    assert verdict.days_since_update == 5


def test_archived_takes_precedence_over_stale_and_outdated():
    metadata = RepositoryMetadata(exists=True, archived=True, updated_at=NOW - timedelta(days=900))
    analyzer = make_analyzer(config=AnalyzerConfig(token="t", check_outdated=True))

    verdict = analyzer.apply_heuristics(Dependency("github.com/a/b", "v1.0.0"), metadata, "v2.0.0")

    assert verdict.reason is Reason.ARCHIVED


def test_stale_takes_precedence_over_outdated():
    analyzer = make_analyzer(config=AnalyzerConfig(token="t", check_outdated=True))
    verdict = analyzer.apply_heuristics(Dependency("github.com/a/b", "v1.0.0"), active_repo(500), "v2.0.0")

    assert verdict.reason is Reason.STALE_INACTIVE


def test_active_details_mention_latest_version():
    analyzer = make_analyzer(config=AnalyzerConfig(token="t", check_outdated=True))
    verdict = analyzer.apply_heuristics(Dependency("github.com/a/b", "v2.0.0"), active_repo(3), "v2.0.0")

    assert verdict.reason is Reason.ACTIVE
    assert verdict.details == "Active repository, last updated 3 days ago (version: v2.0.0, latest: v2.0.0)"


# Routing

def test_replaced_dependency_is_skipped():
    provider = FakeProvider()
    dependency = Dependency("github.com/a/b", "v1.0.0", replace=Replace("github.com/a/b", "../b"))
    verdict = make_analyzer([provider]).analyze_dependency(RequestContext(), dependency)

    assert verdict.details == "Skipped: has replace directive"
    assert verdict.reason is None
    assert not verdict.is_unmaintained
    assert provider.fetches == []


def test_invalid_path_is_reported():
    verdict = analyze(make_analyzer(), "not a module path")
    assert verdict.details == "Invalid module path format"
    assert not verdict.is_unmaintained


def test_mirrored_module_uses_primary_provider():
    provider = FakeProvider(metadata={("golang", "crypto"): active_repo(10)})
    verdict = analyze(make_analyzer([provider]), "golang.org/x/crypto/ssh")

    assert provider.fetches == [("golang", "crypto")]
    assert verdict.reason is Reason.ACTIVE
    assert verdict.details == "Active Go extended package repository, last updated 10 days ago"


def test_mirrored_module_fetch_failure_is_not_unmaintained():
    provider = FakeProvider(error=ProviderError("boom"))
    verdict = analyze(make_analyzer([provider]), "golang.org/x/crypto")

    assert not verdict.is_unmaintained
    assert verdict.details == "Failed to fetch Go repository info: boom"


def test_trusted_prefix_skips_network():
    resolver = FakeResolver()
    verdict = analyze(make_analyzer(resolver=resolver), "k8s.io/client-go")

    assert verdict.reason is Reason.ACTIVE
    assert verdict.details == "Active Kubernetes package (trusted)"
    assert resolver.paths == []


def test_secondary_provider_failure():
    provider = FakeProvider(name="GitLab", hosts=("gitlab.com",), error=ProviderError("timeout"))
    verdict = analyze(make_analyzer([provider]), "gitlab.com/group/project")

    assert not verdict.is_unmaintained
    assert verdict.details == "Failed to fetch gitlab.com repository info: timeout"


@pytest.mark.parametrize(
    "status, unmaintained, reason, details",
    [
        (ResolutionStatus.ACTIVE, False, Reason.ACTIVE, "Active non-GitHub dependency (Proxy): ok"),
        (ResolutionStatus.NOT_FOUND, True, Reason.NOT_FOUND, "Module not found: ok"),
        (ResolutionStatus.UNAVAILABLE, True, Reason.UNKNOWN_SOURCE, "Module unavailable (Proxy): ok"),
        (ResolutionStatus.REDIRECT, False, Reason.UNKNOWN_SOURCE, "Unknown status (Proxy): ok"),
        (ResolutionStatus.UNKNOWN, False, Reason.UNKNOWN_SOURCE, "Unknown status (Proxy): ok"),
    ],
)
def test_resolver_status_mapping(status, unmaintained, reason, details):
    resolver = FakeResolver(ResolutionResult("example.com/team/lib", status, "Proxy", "ok"))
    verdict = analyze(make_analyzer(resolver=resolver), "example.com/team/lib")

    assert resolver.paths == ["example.com/team/lib"]
    assert verdict.is_unmaintained is unmaintained
    assert verdict.reason is reason
    assert verdict.details == details


def test_primary_provider_failure_propagates():
    provider = FakeProvider(error=ProviderError("network down"))
    analyzer = make_analyzer([provider])

    with pytest.raises(ProviderError):
        analyze(analyzer, "github.com/owner/repo")


def test_error_verdict():
    verdict = error_verdict(Dependency("github.com/a/b", "v1.0.0", indirect=True), ProviderError("x"))

    assert verdict.details == "Analysis error: x"
    assert not verdict.is_unmaintained
    assert not verdict.is_direct
    assert verdict.current_version == "v1.0.0"


# Caching

def test_cache_hit_skips_provider(tmp_path: Path):
    cache = DiskCache(tmp_path)
    cache.set("owner", "repo", active_repo(1), "v1.0.0")
    provider = FakeProvider()

    verdict = analyze(make_analyzer([provider], cache=cache), "github.com/owner/repo")

    assert provider.fetches == []
    assert verdict.reason is Reason.ACTIVE


def test_cache_miss_populates_cache(tmp_path: Path):
    cache = DiskCache(tmp_path)
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(1)}, latest="v1.1.0")
    config = AnalyzerConfig(token="t", check_outdated=True)
    analyzer = make_analyzer([provider], config=config, cache=cache)

    analyze(analyzer, "github.com/owner/repo")
    analyze(analyzer, "github.com/owner/repo")

    assert provider.fetches == [("owner", "repo")]
    metadata, latest, hit = cache.get("owner", "repo")
    assert hit and latest == "v1.1.0"
    assert analyzer.is_cached(analyzer.module_info("github.com/owner/repo/sub"))


def test_archived_repository_skips_latest_version_lookup():
    provider = FakeProvider(
        metadata={("owner", "repo"): RepositoryMetadata(exists=True, archived=True)}, latest="v9.0.0"
    )
    config = AnalyzerConfig(token="t", no_cache=True, check_outdated=True)
    analyze(make_analyzer([provider], config=config), "github.com/owner/repo")

    assert provider.version_fetches == []


def test_cache_write_failure_only_warns(caplog):
    class BrokenCache(DiskCache):
        def __init__(self):
            super().__init__(disabled=True)

        def set(self, owner, repo, metadata, latest_version=""):
            raise CacheError("disk full")

    provider = FakeProvider(metadata={("owner", "repo"): active_repo(1)})
    verdict = analyze(make_analyzer([provider], cache=BrokenCache()), "github.com/owner/repo")

    assert verdict.reason is Reason.ACTIVE
    assert "Cache write failed" in caplog.text


# Retractions

def test_retraction_annotation():
    checker = FakeRetractionChecker(RetractionInfo(is_retracted=True, reason="Critical bug"))
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(1)})
    config = AnalyzerConfig(token="t", no_cache=True, check_retractions=True)

    verdict = analyze(make_analyzer([provider], config=config, retraction_checker=checker), "github.com/owner/repo")

    assert verdict.is_retracted
    assert verdict.retraction_reason == "Critical bug"
    assert not verdict.is_unmaintained
    assert checker.calls == [("github.com/owner/repo", "v1.0.0")]


def test_retraction_lookup_failure_leaves_verdict_unchanged():
    checker = FakeRetractionChecker(error=ProviderError("offline"))
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(1)})
    config = AnalyzerConfig(token="t", no_cache=True, check_retractions=True)

    verdict = analyze(make_analyzer([provider], config=config, retraction_checker=checker), "github.com/owner/repo")

    assert not verdict.is_retracted
    assert verdict.reason is Reason.ACTIVE


def test_retraction_not_checked_when_disabled():
    checker = FakeRetractionChecker()
    provider = FakeProvider(metadata={("owner", "repo"): active_repo(1)})
    analyze(make_analyzer([provider], retraction_checker=checker), "github.com/owner/repo")

    assert checker.calls == []


def test_expired_cleanup_failure_only_warns(caplog):
    class UncleanableCache(DiskCache):
        def __init__(self):
            super().__init__(disabled=True)

        def clean_expired(self):
            raise CacheError("permission denied")

    provider = FakeProvider(metadata={("owner", "repo"): active_repo(1)})
    analyzer = make_analyzer([provider], cache=UncleanableCache())

    assert "Failed to clean expired cache entries" in caplog.text
    assert analyze(analyzer, "github.com/owner/repo").reason is Reason.ACTIVE
