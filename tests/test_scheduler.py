import random
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dependency_health import cache as cache_module
from dependency_health import scheduler as scheduler_module
from dependency_health.analyzer import DependencyAnalyzer
from dependency_health.cache import DiskCache
from dependency_health.config import AnalyzerConfig
from dependency_health.context import RequestContext
from dependency_health.errors import ProviderError
from dependency_health.models import Dependency, Module, Reason, RepositoryMetadata, ResolutionResult, ResolutionStatus
from dependency_health.providers import ProviderRegistry
from dependency_health.scheduler import DependencyScheduler, analyze


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class SlowProvider:
    """Provider with random latency; repos named ``broken*`` fail."""

    name = "GitHub"
    hosts = frozenset({"github.com"})

    def __init__(self):
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def fetch_repository_metadata(self, ctx, owner, repo):
        ctx.check()
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(random.uniform(0, 0.01))
            if repo.startswith("broken"):
                raise ProviderError(f"{repo} unreachable")
            days = 10 if repo.endswith("0") else 500
            return RepositoryMetadata(exists=True, updated_at=NOW - timedelta(days=days))
        finally:
            with self.lock:
                self.active -= 1

    def fetch_latest_version(self, ctx, owner, repo):
        return ""


class FakeResolver:
    def resolve(self, ctx, module_path):
        ctx.check()
        return ResolutionResult(module_path, ResolutionStatus.ACTIVE, "Proxy", "ok")


class NoRetractions:
    def check(self, ctx, module_path, version):
        raise AssertionError("retractions are disabled")


def make_analyzer(provider=None, cache=None, **config):
    config = AnalyzerConfig(token="t", **config)
    return DependencyAnalyzer(
        config,
        ProviderRegistry([provider or SlowProvider()]),
        cache=cache or DiskCache(disabled=True),
        resolver=FakeResolver(),
        retraction_checker=NoRetractions(),
        clock=lambda: NOW,
    )


def dependencies(count=30):
    deps = []
    for i in range(count):
        if i % 7 == 3:
            deps.append(Dependency(f"example.com/vanity/lib{i}", "v1.0.0"))
        elif i % 11 == 5:
            deps.append(Dependency(f"github.com/owner/broken{i}", "v1.0.0"))
        else:
            deps.append(Dependency(f"github.com/owner/repo{i}", "v1.0.0", indirect=i % 2 == 1))
    return deps


def test_sequential_matches_concurrent_for_any_worker_count():
    deps = dependencies()
    expected = DependencyScheduler(make_analyzer(sequential=True)).run(deps)

    for workers in (1, 3, 10):
        verdicts = DependencyScheduler(make_analyzer(concurrency=workers)).run(deps)
        assert verdicts == expected

    assert [v.package for v in expected] == [d.path for d in deps]


def test_failed_units_become_error_verdicts():
    deps = dependencies()
    verdicts = DependencyScheduler(make_analyzer()).run(deps)

    broken = [v for v in verdicts if "broken" in v.package]
    assert broken
    for verdict in broken:
        assert not verdict.is_unmaintained
        assert verdict.details.startswith("Analysis error: ")
    assert any(v.reason is Reason.STALE_INACTIVE for v in verdicts)
    assert any(v.details.startswith("Active non-GitHub dependency") for v in verdicts)


def test_worker_pool_is_bounded():
    provider = SlowProvider()
    DependencyScheduler(make_analyzer(provider, concurrency=2)).run(dependencies(40))
    assert 1 <= provider.peak <= 2


def test_partition_into_tiers(tmp_path: Path):
    cache = DiskCache(tmp_path)
    cache.set("owner", "cached", RepositoryMetadata(exists=True, updated_at=NOW))
    scheduler = DependencyScheduler(make_analyzer(cache=cache))

    tiers = scheduler.partition(
        [
            Dependency("gitlab.com/group/project"),
            Dependency("github.com/owner/cached"),
            Dependency("github.com/owner/fresh"),
            Dependency("golang.org/x/text"),
        ]
    )

    assert [item.index for item in tiers.cached] == [1]
    assert [item.index for item in tiers.primary] == [2]
    assert [item.index for item in tiers.fallback] == [0, 3]


def test_cancelled_context_reports_failures():
    ctx = RequestContext()
    ctx.cancel()
    deps = [Dependency("github.com/owner/repo0"), Dependency("example.com/vanity/lib")]

    verdicts = DependencyScheduler(make_analyzer()).run(deps, ctx=ctx)

    assert len(verdicts) == 2
    assert all(v.details.startswith("Analysis error: ") for v in verdicts)
    assert not any(v.is_unmaintained for v in verdicts)


def test_dependency_paths_for_indirect_unmaintained(monkeypatch):
    lookups = []

    def fake_path(project_path, package_path):
        lookups.append(package_path)
        return ["example.com/project", package_path]

    monkeypatch.setattr(scheduler_module, "get_dependency_path", fake_path)
    module = Module(
        path="example.com/project",
        project_path="/src/project",
        dependencies=(
            Dependency("github.com/owner/repo1", indirect=True),
            Dependency("github.com/owner/repo3", indirect=False),
            Dependency("github.com/owner/repo10", indirect=True),
        ),
    )

    verdicts = analyze(make_analyzer(show_dep_path=True), module)

    assert lookups == ["github.com/owner/repo1"]
    assert verdicts[0].dependency_path == ("example.com/project", "github.com/owner/repo1")
    assert verdicts[1].dependency_path == ()


def test_empty_dependency_list():
    assert DependencyScheduler(make_analyzer()).run([]) == []


@pytest.mark.parametrize("sequential", [True, False])
def test_analyze_accepts_plain_lists(sequential):
    deps = [Dependency("github.com/owner/repo0")]
    verdicts = analyze(make_analyzer(sequential=sequential), deps)
    assert verdicts[0].reason is Reason.ACTIVE


@pytest.mark.parametrize("sequential", [True, False])
def test_undeletable_expired_cache_entry_falls_through_to_provider(tmp_path: Path, monkeypatch, sequential):
    cache = DiskCache(tmp_path, ttl=timedelta(hours=1))
    cache.set("owner", "repo0", RepositoryMetadata(exists=False))
    analyzer = make_analyzer(cache=cache, sequential=sequential)

    def read_only_unlink(self, missing_ok=False):
        raise PermissionError("read-only cache directory")

    later = datetime.now(timezone.utc) + timedelta(hours=2)
    monkeypatch.setattr(cache_module, "utcnow", lambda: later)
    monkeypatch.setattr(Path, "unlink", read_only_unlink)

    verdicts = DependencyScheduler(analyzer).run([Dependency("github.com/owner/repo0", "v1.0.0")])

    assert len(verdicts) == 1
    assert verdicts[0].reason is Reason.ACTIVE
    assert verdicts[0].details.startswith("Active repository")
