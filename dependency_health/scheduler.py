"""
Sequential and tiered concurrent scheduling of dependency classification.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from .analyzer import DependencyAnalyzer, error_verdict
from .config import AnalyzerConfig
from .context import RequestContext
from .models import Dependency, Module, Verdict
from .parser import get_dependency_path


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedDependency:
    """A dependency paired with its position in the input list."""

    index: int
    dependency: Dependency


@dataclass(frozen=True)
class Tiers:
    cached: Tuple[IndexedDependency, ...]
    primary: Tuple[IndexedDependency, ...]
    fallback: Tuple[IndexedDependency, ...]


class DependencyScheduler:
    """Run the analyzer over a dependency list, preserving input order.

    Concurrent mode splits the work into three tiers (cached primary-host,
    uncached primary-host, everything else) and drains them one after the
    other, each through its own bounded worker pool.
    """

    def __init__(self, analyzer: DependencyAnalyzer, config: Optional[AnalyzerConfig] = None) -> None:
        self.analyzer = analyzer
        self.config = config or analyzer.config

    def analyze_module(self, module: Module, ctx: Optional[RequestContext] = None) -> List[Verdict]:
        return self.run(module.dependencies, ctx=ctx, project_path=module.project_path)

    def run(
        self,
        dependencies: Sequence[Dependency],
        ctx: Optional[RequestContext] = None,
        project_path: Optional[str] = None,
    ) -> List[Verdict]:
        ctx = ctx or RequestContext.background()
        dependencies = list(dependencies)
        results: List[Optional[Verdict]] = [None] * len(dependencies)

        with tqdm(
            total=len(dependencies),
            desc="Analyzing",
            unit="dep",
            disable=not self.config.show_progress,
        ) as progress:
            if self.config.sequential:
                for index, dependency in enumerate(dependencies):
                    results[index] = self._classify(ctx, dependency)
                    progress.update(1)
            else:
                tiers = self.partition(dependencies)
                self._run_tier(ctx, tiers.cached, results, self.config.cached_concurrency, progress)
                self._run_tier(ctx, tiers.primary, results, self.config.primary_concurrency, progress)
                self._run_tier(ctx, tiers.fallback, results, self.config.fallback_concurrency, progress)

        verdicts = [verdict for verdict in results if verdict is not None]
        if self.config.show_dep_path and project_path:
            verdicts = self._attach_dependency_paths(verdicts, project_path)
        return verdicts

    def partition(self, dependencies: Sequence[Dependency]) -> Tiers:
        cached: List[IndexedDependency] = []
        primary: List[IndexedDependency] = []
        fallback: List[IndexedDependency] = []

        for index, dependency in enumerate(dependencies):
            item = IndexedDependency(index, dependency)
            module_info = self.analyzer.module_info(dependency.path)
            if module_info.is_primary_host:
                if self.analyzer.is_cached(module_info):
                    cached.append(item)
                else:
                    primary.append(item)
            else:
                fallback.append(item)

        return Tiers(tuple(cached), tuple(primary), tuple(fallback))

    def _run_tier(
        self,
        ctx: RequestContext,
        tier: Sequence[IndexedDependency],
        results: List[Optional[Verdict]],
        workers: int,
        progress: tqdm,
    ) -> None:
        if not tier:
            return
        logger.debug("Running tier of %d dependencies with %d workers", len(tier), workers)

        def unit(item: IndexedDependency) -> None:
            # Each unit owns results[item.index] exclusively
            results[item.index] = self._classify(ctx, item.dependency)

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures = [executor.submit(unit, item) for item in tier]
            for future in as_completed(futures):
                future.result()
                progress.update(1)

    def _classify(self, ctx: RequestContext, dependency: Dependency) -> Verdict:
        try:
            return self.analyzer.analyze_dependency(ctx, dependency)
        except Exception as e:
            logger.warning("Analysis failed for %s: %s", dependency.path, e)
            return error_verdict(dependency, e)

    def _attach_dependency_paths(self, verdicts: List[Verdict], project_path: str) -> List[Verdict]:
        attached = []
        for verdict in verdicts:
            if verdict.is_unmaintained and not verdict.is_direct:
                path = get_dependency_path(project_path, verdict.package)
                if path:
                    verdict = replace(verdict, dependency_path=tuple(path))
            attached.append(verdict)
        return attached


def analyze(
    analyzer: DependencyAnalyzer,
    target: Union[Module, Sequence[Dependency]],
    ctx: Optional[RequestContext] = None,
) -> List[Verdict]:
    """Convenience wrapper running a scheduler built from the analyzer's config."""
    scheduler = DependencyScheduler(analyzer)
    if isinstance(target, Module):
        return scheduler.analyze_module(target, ctx=ctx)
    return scheduler.run(target, ctx=ctx)
