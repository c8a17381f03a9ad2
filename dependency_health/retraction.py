"""
Version retraction lookup using the module proxy.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import requests

from .config import AnalyzerConfig, DEFAULT_RESOLVER_TIMEOUT
from .context import RequestContext
from .errors import ProviderError
from .models import RetractionInfo, RetractionRange
from .resolvers import DEFAULT_PROXY_URL, escape_module_path
from .versions import is_valid_semver, version_in_range


logger = logging.getLogger(__name__)


def parse_retract_line(line: str, comment: str = "") -> Optional[RetractionRange]:
    """Parse one retract directive (with or without the keyword)."""
    line = line.strip()
    if line.startswith("retract "):
        line = line[len("retract "):].strip()

    if "//" in line:
        idx = line.index("//")
        if not comment:
            comment = line[idx + 2:].strip()
        line = line[:idx].strip()

    if not line:
        return None

    if line.startswith("[") and line.endswith("]"):
        parts = line[1:-1].split(",")
        if len(parts) == 2:
            return RetractionRange(low=parts[0].strip(), high=parts[1].strip(), reason=comment)

    if is_valid_semver(line):
        return RetractionRange(low=line, high=line, reason=comment)
    return None


def parse_retractions(text: str) -> List[RetractionRange]:
    """Extract retract directives from go.mod text.

    Comment lines directly above a directive become its reason unless the
    directive has an inline comment of its own.
    """
    retractions: List[RetractionRange] = []
    comment = ""
    in_block = False

    for raw_line in text.splitlines():
        line = raw_line.strip()

        if line.startswith("//"):
            text_part = line[2:].strip()
            comment = f"{comment} {text_part}" if comment else text_part
            continue

        if line.startswith("retract ("):
            in_block = True
            comment = ""
            continue

        if in_block and line == ")":
            in_block = False
            comment = ""
            continue

        if line.startswith("retract ") or in_block:
            retract = parse_retract_line(line, comment)
            if retract is not None:
                retractions.append(retract)
            comment = ""
            continue

        comment = ""

    return retractions


class RetractionChecker:
    """Check whether a module version is retracted by its latest release."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        proxy_url: str = DEFAULT_PROXY_URL,
        timeout: float = DEFAULT_RESOLVER_TIMEOUT,
    ) -> None:
        self.session = session or requests.Session()
        self.proxy_url = proxy_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: AnalyzerConfig, session: Optional[requests.Session] = None) -> "RetractionChecker":
        return cls(session=session, timeout=config.resolver_timeout)

    def check(self, ctx: RequestContext, module_path: str, version: str) -> RetractionInfo:
        escaped = escape_module_path(module_path)

        response = self._get(ctx, f"{self.proxy_url}/{escaped}/@latest")
        if response.status_code != 200:
            return RetractionInfo()
        try:
            latest = (response.json() or {}).get("Version", "")
        except (ValueError, AttributeError):
            return RetractionInfo()
        if not latest:
            return RetractionInfo()

        response = self._get(ctx, f"{self.proxy_url}/{escaped}/@v/{escape_module_path(latest)}.mod")
        if response.status_code != 200:
            return RetractionInfo()

        ranges = tuple(parse_retractions(response.text))
        for retract in ranges:
            if version_in_range(version, retract.low, retract.high):
                return RetractionInfo(is_retracted=True, reason=retract.reason, ranges=ranges)
        return RetractionInfo(ranges=ranges)

    def _get(self, ctx: RequestContext, url: str) -> requests.Response:
        try:
            return self.session.get(url, timeout=ctx.timeout(self.timeout), allow_redirects=False)
        except requests.RequestException as e:
            raise ProviderError(f"failed to fetch {url}: {e}") from e
