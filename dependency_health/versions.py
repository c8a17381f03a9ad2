"""
Semantic version helpers for module versions (``v``-prefixed).
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from semantic_version import Version


_SHORTHAND = re.compile(r"^\d+(\.\d+)?$")


def normalize_version(value: str) -> str:
    """Ensure a version string carries the leading ``v`` marker."""
    if value and not value.startswith("v"):
        return "v" + value
    return value


def parse_semver(value: str) -> Optional[Version]:
    """Parse a ``v``-prefixed semantic version, ignoring build metadata.

    ``v1`` and ``v1.2`` are accepted as shorthands for ``v1.0.0`` and
    ``v1.2.0``. Anything else that is not strict semver yields None.
    """
    if not value or not value.startswith("v"):
        return None
    text = value[1:]
    if _SHORTHAND.match(text):
        parts = text.split(".") + ["0", "0"]
        text = ".".join(parts[:3])
    try:
        parsed = Version(text)
    except ValueError:
        return None
    return Version(
        major=parsed.major,
        minor=parsed.minor,
        patch=parsed.patch,
        prerelease=parsed.prerelease,
    )


def is_valid_semver(value: str) -> bool:
    return parse_semver(value) is not None


def compare_versions(left: str, right: str) -> int:
    """Three-way comparison; raises ValueError if either side is invalid."""
    left_ver = parse_semver(left)
    right_ver = parse_semver(right)
    if left_ver is None or right_ver is None:
        raise ValueError(f"cannot compare {left!r} with {right!r}")
    if left_ver < right_ver:
        return -1
    if left_ver > right_ver:
        return 1
    return 0


def is_version_outdated(current: str, latest: str) -> bool:
    """True when ``current`` is strictly older than ``latest``.

    Empty or unparseable operands never count as outdated.
    """
    if not current or not latest:
        return False
    current = normalize_version(current)
    latest = normalize_version(latest)
    if not is_valid_semver(current) or not is_valid_semver(latest):
        return False
    return compare_versions(current, latest) < 0


def version_in_range(version: str, low: str, high: str) -> bool:
    """Inclusive range membership; invalid operands never match."""
    if not (is_valid_semver(version) and is_valid_semver(low) and is_valid_semver(high)):
        return False
    return compare_versions(version, low) >= 0 and compare_versions(version, high) <= 0


def latest_semver(tags: Iterable[str]) -> str:
    """Pick the highest semantic version among tag names.

    Falls back to the first tag when none of them is a semantic version.
    """
    tags = [tag for tag in tags if tag]
    if not tags:
        return ""

    candidates = []
    for tag in tags:
        normalized = normalize_version(tag)
        parsed = parse_semver(normalized)
        if parsed is not None:
            candidates.append((parsed, normalized))

    if not candidates:
        return tags[0]

    candidates.sort(key=lambda item: item[0], reverse=True)
    return candidates[0][1]
