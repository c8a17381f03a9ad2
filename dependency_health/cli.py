"""
Command-line interface for the dependency health tool.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .analyzer import DependencyAnalyzer
from .cache import DiskCache
from .config import (
    AnalyzerConfig,
    DEFAULT_CACHE_TTL_HOURS,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_AGE_DAYS,
    DEFAULT_RESOLVER_TIMEOUT,
)
from .context import RequestContext
from .errors import CacheError, DependencyHealthError
from .models import summarize
from .parser import parse_go_mod
from .reporting import build_json_document, export_verdicts_csv, render_console, save_results_json
from .scheduler import DependencyScheduler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find unmaintained dependencies in Go projects"
    )

    parser.add_argument(
        "--target",
        default=".",
        help="Path to the project directory containing go.mod. Default: ."
    )

    parser.add_argument(
        "--token",
        default=None,
        help="GitHub token (falls back to the PAT or GITHUB_TOKEN environment variables)"
    )

    parser.add_argument(
        "--max-age",
        type=int,
        default=DEFAULT_MAX_AGE_DAYS,
        help=f"Days without activity before a repository counts as stale. Default: {DEFAULT_MAX_AGE_DAYS}"
    )

    parser.add_argument(
        "--check-outdated",
        action="store_true",
        help="Flag dependencies that are behind the latest tagged version"
    )

    parser.add_argument(
        "--check-retractions",
        action="store_true",
        help="Check whether declared versions have been retracted"
    )

    parser.add_argument(
        "--resolver-timeout",
        type=float,
        default=DEFAULT_RESOLVER_TIMEOUT,
        help=f"Timeout in seconds for resolving non-GitHub dependencies. Default: {DEFAULT_RESOLVER_TIMEOUT:g}"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall deadline in seconds for the whole analysis"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output JSON instead of the console report"
    )

    parser.add_argument(
        "--output",
        default=None,
        help="Also write the JSON report to this file"
    )

    parser.add_argument(
        "--csv",
        default=None,
        help="Also write the verdicts to this CSV file"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show maintained packages and debug logging"
    )

    parser.add_argument(
        "--tree",
        action="store_true",
        help="Show dependency paths for indirect unmaintained packages"
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while analyzing"
    )

    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not cache repository data on disk"
    )

    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Remove all cached repository data before analyzing"
    )

    parser.add_argument(
        "--cache-duration",
        type=float,
        default=DEFAULT_CACHE_TTL_HOURS,
        help=f"Cache duration in hours. Default: {DEFAULT_CACHE_TTL_HOURS}"
    )

    parser.add_argument(
        "--sync",
        action="store_true",
        help="Analyze dependencies sequentially instead of concurrently"
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help=f"Number of concurrent requests. Default: {DEFAULT_CONCURRENCY}"
    )

    parser.add_argument(
        "--no-exit-code",
        action="store_true",
        help="Do not exit non-zero when unmaintained packages are found"
    )

    return parser


def config_from_args(args: argparse.Namespace, token: str) -> AnalyzerConfig:
    return AnalyzerConfig(
        token=token,
        max_age_days=args.max_age,
        cache_ttl_hours=args.cache_duration,
        no_cache=args.no_cache,
        concurrency=args.concurrency,
        sequential=args.sync,
        check_outdated=args.check_outdated,
        check_retractions=args.check_retractions,
        resolver_timeout=args.resolver_timeout,
        show_dep_path=args.tree,
        show_progress=args.progress,
        verbose=args.verbose,
    )


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    token = args.token or os.environ.get("PAT") or os.environ.get("GITHUB_TOKEN")
    if not token:
        parser.error("a GitHub token is required: use --token or set PAT")

    config = config_from_args(args, token)

    if args.clear_cache:
        try:
            DiskCache.from_config(config).clear()
        except CacheError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)

    try:
        module = parse_go_mod(args.target)
    except (OSError, ValueError) as e:
        print(f"Error: failed to parse go.mod: {e}", file=sys.stderr)
        sys.exit(2)

    if not args.json:
        mode = "sequential mode" if config.sequential else f"concurrent: {config.primary_concurrency} workers"
        print(f"Project: {module.path}")
        print(f"Analyzing {len(module.dependencies)} dependencies ({mode})...\n")

    try:
        analyzer = DependencyAnalyzer.from_config(config)
    except DependencyHealthError as e:
        print(f"Error: failed to create analyzer: {e}", file=sys.stderr)
        sys.exit(2)

    if args.verbose and not args.json and not analyzer.cache.disabled:
        print(f"Cache: {analyzer.cache.stats()} entries in {analyzer.cache.cache_dir}\n")

    ctx = RequestContext(timeout=args.timeout)
    verdicts = DependencyScheduler(analyzer).analyze_module(module, ctx=ctx)

    if args.json:
        print(json.dumps(build_json_document(verdicts), indent=2, default=str))
    else:
        render_console(verdicts, verbose=args.verbose, check_outdated=args.check_outdated)

    if args.output:
        save_results_json(verdicts, Path(args.output))

    if args.csv:
        export_verdicts_csv(verdicts, Path(args.csv))

    if summarize(verdicts).unmaintained_count and not args.no_exit_code:
        sys.exit(1)


if __name__ == "__main__":
    main()
