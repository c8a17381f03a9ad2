#!/usr/bin/env python3
"""
Example script showing how to use the dependency-health library.
"""

import os
from pathlib import Path

from dependency_health.analyzer import DependencyAnalyzer
from dependency_health.config import AnalyzerConfig
from dependency_health.context import RequestContext
from dependency_health.models import Dependency, summarize
from dependency_health.parser import parse_go_mod
from dependency_health.reporting import export_verdicts_csv, render_console
from dependency_health.scheduler import DependencyScheduler


def example_project_analysis(token: str, project: Path):
    """Example: Analyze every dependency in a go.mod."""
    print("="*60)
    print("Example 1: Project Analysis")
    print("="*60)

    config = AnalyzerConfig(token=token, check_outdated=True, show_progress=True)
    analyzer = DependencyAnalyzer.from_config(config)
    module = parse_go_mod(project)

    verdicts = DependencyScheduler(analyzer).analyze_module(module, ctx=RequestContext(timeout=300))
    render_console(verdicts, check_outdated=True)

    output_file = export_verdicts_csv(verdicts, Path("./output/example1/verdicts.csv"))
    print(f"\nVerdicts written to {output_file}")


def example_single_dependency(token: str):
    """Example: Classify a single dependency with retraction checks."""
    print("\n" + "="*60)
    print("Example 2: Single Dependency")
    print("="*60)

    config = AnalyzerConfig(token=token, check_retractions=True, max_age_days=180)
    analyzer = DependencyAnalyzer.from_config(config)

    verdict = analyzer.analyze_dependency(
        RequestContext(timeout=30),
        Dependency("github.com/pkg/errors", "v0.9.1"),
    )

    print(f"\nPackage: {verdict.package}")
    print(f"Unmaintained: {verdict.is_unmaintained}")
    print(f"Reason: {verdict.reason.value if verdict.reason else '-'}")
    print(f"Details: {verdict.details}")
    print(f"Retracted: {verdict.is_retracted}")


def example_sequential_mode(token: str):
    """Example: Sequential scheduling of a hand-built dependency list."""
    print("\n" + "="*60)
    print("Example 3: Sequential Mode")
    print("="*60)

    config = AnalyzerConfig(token=token, sequential=True, no_cache=True)
    analyzer = DependencyAnalyzer.from_config(config)
    dependencies = [
        Dependency("github.com/spf13/cobra", "v1.8.0"),
        Dependency("golang.org/x/text", "v0.14.0", indirect=True),
        Dependency("go.uber.org/zap", "v1.27.0"),
    ]

    summary = summarize(DependencyScheduler(analyzer).run(dependencies))
    print(f"\nAnalyzed: {summary.total_dependencies}")
    print(f"Unmaintained: {summary.unmaintained_count}")
    print(f"Maintained: {summary.maintained_count}")


if __name__ == "__main__":
    import sys

    print("Dependency Health - Example Usage")
    print("="*60)
    print("\nNOTE: These examples require network access and a GitHub token in PAT.")

    token = os.environ.get("PAT") or os.environ.get("GITHUB_TOKEN")
    if not token:
        print("PAT is not set", file=sys.stderr)
        sys.exit(2)

    try:
        example_project_analysis(token, Path(sys.argv[1] if len(sys.argv) > 1 else "."))
        example_single_dependency(token)
        example_sequential_mode(token)

        print("\n" + "="*60)
        print("Examples completed successfully!")
        print("="*60)

    except Exception as e:
        print(f"\nError running examples: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
