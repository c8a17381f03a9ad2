"""
Reporting and export utilities.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, TextIO

import pandas as pd

from . import __version__
from .models import Reason, SummaryStats, Verdict, summarize
from .time_utils import utcnow


logger = logging.getLogger(__name__)

_REASON_SEVERITY = {
    Reason.ARCHIVED: 0,
    Reason.NOT_FOUND: 10,
    Reason.STALE_INACTIVE: 20,
    Reason.OUTDATED: 30,
}


def severity_score(verdict: Verdict) -> int:
    """Lower is more severe; direct dependencies rank above indirect ones."""
    score = _REASON_SEVERITY.get(verdict.reason, 40)
    if not verdict.is_direct:
        score += 50
    return score


def repository_url(verdict: Verdict) -> str:
    if verdict.repository is not None and verdict.repository.url:
        return verdict.repository.url
    for host in ("github.com", "gitlab.com", "bitbucket.org"):
        if verdict.package.startswith(host + "/"):
            parts = verdict.package.split("/")
            if len(parts) >= 3:
                return f"https://{host}/{parts[1]}/{parts[2]}"
    return ""


def render_console(
    verdicts: List[Verdict],
    verbose: bool = False,
    check_outdated: bool = False,
    out: Optional[TextIO] = None,
) -> None:
    out = out or sys.stdout
    unmaintained = sorted(
        (v for v in verdicts if v.is_unmaintained),
        key=lambda v: (severity_score(v), v.package),
    )
    unknown = [v for v in verdicts if not v.is_unmaintained and v.reason is Reason.UNKNOWN_SOURCE]
    maintained = [
        v for v in verdicts if not v.is_unmaintained and v.reason is not Reason.UNKNOWN_SOURCE
    ]

    print("Dependency Analysis Results:", file=out)
    print("=" * 28, file=out)

    if unmaintained:
        print(f"\nUNMAINTAINED PACKAGES ({len(unmaintained)} found):", file=out)
        print("-" * 40, file=out)
        for verdict in unmaintained:
            dep_type = "direct" if verdict.is_direct else "indirect"
            print(f"  {verdict.package} ({dep_type}) - {verdict.details}", file=out)
            url = repository_url(verdict)
            if url:
                print(f"    {url}", file=out)
            if verdict.is_retracted:
                print(f"    Retracted version: {verdict.retraction_reason or 'no reason given'}", file=out)
            if verdict.dependency_path:
                print(f"    Dependency path: {' -> '.join(verdict.dependency_path)}", file=out)

    if unknown:
        print(f"\nUNKNOWN STATUS PACKAGES ({len(unknown)} found):", file=out)
        print("-" * 40, file=out)
        for verdict in unknown:
            print(f"  {verdict.package} - {verdict.details}", file=out)

    if verbose and maintained:
        print(f"\nMAINTAINED PACKAGES ({len(maintained)} found):", file=out)
        print("-" * 40, file=out)
        for verdict in maintained:
            dep_type = "direct" if verdict.is_direct else "indirect"
            print(f"  {verdict.package} ({dep_type}) - {verdict.details}", file=out)

    print_summary(summarize(verdicts), check_outdated=check_outdated, out=out)


def print_summary(summary: SummaryStats, check_outdated: bool = False, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print("\n" + "=" * 50, file=out)
    print("ANALYSIS SUMMARY", file=out)
    print("=" * 50, file=out)
    print(f"Total dependencies analyzed: {summary.total_dependencies}\n", file=out)

    if summary.unmaintained_count:
        print(
            f"UNMAINTAINED PACKAGES: {summary.unmaintained_count} "
            f"({summary.direct_unmaintained} direct, {summary.indirect_unmaintained} indirect)",
            file=out,
        )
        if summary.archived_count:
            print(f"   Archived repositories: {summary.archived_count}", file=out)
        if summary.not_found_count:
            print(f"   Not found/deleted: {summary.not_found_count}", file=out)
        if summary.stale_inactive_count:
            print(f"   Stale/Inactive: {summary.stale_inactive_count}", file=out)
        if check_outdated and summary.outdated_count:
            print(f"   Outdated versions: {summary.outdated_count}", file=out)

    if summary.unknown_count:
        print(f"UNKNOWN STATUS: {summary.unknown_count}", file=out)
    if summary.retracted_count:
        print(f"RETRACTED VERSIONS: {summary.retracted_count}", file=out)
    if summary.maintained_count > 0:
        print(f"MAINTAINED PACKAGES: {summary.maintained_count}", file=out)


def build_json_document(verdicts: List[Verdict]) -> Dict:
    summary = summarize(verdicts)
    return {
        "summary": {
            "total_dependencies": summary.total_dependencies,
            "unmaintained_count": summary.unmaintained_count,
            "direct_unmaintained": summary.direct_unmaintained,
            "indirect_unmaintained": summary.indirect_unmaintained,
            "archived_count": summary.archived_count,
            "not_found_count": summary.not_found_count,
            "stale_inactive_count": summary.stale_inactive_count,
            "outdated_count": summary.outdated_count,
            "unknown_count": summary.unknown_count,
            "retracted_count": summary.retracted_count,
        },
        "results": [verdict.to_dict() for verdict in verdicts],
        "timestamp": utcnow().isoformat(),
        "version": __version__,
    }


def save_results_json(verdicts: List[Verdict], output_file: Path) -> Path:
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w') as f:
        json.dump(build_json_document(verdicts), f, indent=2, default=str)
    logger.info("Saved results to %s", output_file)
    return output_file


def verdicts_frame(verdicts: List[Verdict]) -> pd.DataFrame:
    columns = [
        "package",
        "is_unmaintained",
        "is_direct",
        "reason",
        "details",
        "current_version",
        "latest_version",
        "days_since_update",
        "is_retracted",
        "retraction_reason",
        "dependency_path",
    ]
    rows = []
    for verdict in verdicts:
        row = verdict.to_dict()
        row["dependency_path"] = " -> ".join(row["dependency_path"])
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def export_verdicts_csv(verdicts: List[Verdict], output_file: Path) -> Path:
    output_file.parent.mkdir(parents=True, exist_ok=True)
    verdicts_frame(verdicts).to_csv(output_file, index=False)
    logger.info("Saved %d verdicts to %s", len(verdicts), output_file)
    return output_file
