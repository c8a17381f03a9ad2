"""
Fallback resolution for modules hosted outside the metadata providers.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import requests

from .config import AnalyzerConfig, DEFAULT_RESOLVER_TIMEOUT
from .context import RequestContext
from .interfaces import ResolutionStrategy
from .models import ModuleInfo, ResolutionResult, ResolutionStatus
from .module_path import classify_module_path, get_primary_mapping, get_well_known_module


logger = logging.getLogger(__name__)

DEFAULT_PROXY_URL = "https://proxy.golang.org"
_REDIRECT_CODES = (301, 302, 307, 308)
_GONE_CODES = (404, 410)


def escape_module_path(value: str) -> str:
    """Escape a module path or version for the module proxy protocol.

    Upper-case letters become ``!`` followed by the lower-case letter so the
    result is safe on case-insensitive file systems.
    """
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in value)


class PackageIndexStrategy:
    """Ask the module proxy whether it has any versions of the module."""

    name = "package-index"

    def __init__(
        self,
        session: requests.Session,
        proxy_url: str = DEFAULT_PROXY_URL,
        timeout: float = DEFAULT_RESOLVER_TIMEOUT,
    ) -> None:
        self.session = session
        self.proxy_url = proxy_url.rstrip("/")
        self.timeout = timeout

    def attempt(
        self, ctx: RequestContext, module_path: str, module_info: ModuleInfo
    ) -> Optional[ResolutionResult]:
        url = f"{self.proxy_url}/{escape_module_path(module_path)}/@v/list"
        try:
            response = self.session.get(url, timeout=ctx.timeout(self.timeout), allow_redirects=False)
        except requests.RequestException as e:
            logger.debug("Module proxy lookup failed for %s: %s", module_path, e)
            return None

        if response.status_code == 200:
            status, details = ResolutionStatus.ACTIVE, "Available in Go module proxy"
        elif response.status_code in _GONE_CODES:
            status, details = ResolutionStatus.NOT_FOUND, "Not found in Go module proxy"
        else:
            status = ResolutionStatus.UNAVAILABLE
            details = f"Go module proxy returned status {response.status_code}"

        return ResolutionResult(
            module_path=module_path,
            status=status,
            hosting_provider="Go Module Proxy",
            details=details,
            actual_url=url,
        )


class VanityURLStrategy:
    """Probe the import path's own go-get discovery endpoint."""

    name = "vanity-url"
    schemes = ("https", "http")

    def __init__(self, session: requests.Session, timeout: float = DEFAULT_RESOLVER_TIMEOUT) -> None:
        self.session = session
        self.timeout = timeout

    def attempt(
        self, ctx: RequestContext, module_path: str, module_info: ModuleInfo
    ) -> Optional[ResolutionResult]:
        for scheme in self.schemes:
            url = f"{scheme}://{module_path}?go-get=1"
            try:
                # Redirects are reported, never followed
                response = self.session.get(url, timeout=ctx.timeout(self.timeout), allow_redirects=False)
            except requests.RequestException as e:
                logger.debug("Vanity URL probe failed for %s: %s", url, e)
                continue

            if response.status_code == 200:
                return ResolutionResult(
                    module_path=module_path,
                    status=ResolutionStatus.ACTIVE,
                    hosting_provider="Vanity URL",
                    details=f"Vanity URL accessible via {scheme}",
                    actual_url=url,
                )
            if response.status_code in _REDIRECT_CODES:
                location = response.headers.get("Location", "")
                if location:
                    return ResolutionResult(
                        module_path=module_path,
                        status=ResolutionStatus.REDIRECT,
                        hosting_provider="Vanity URL",
                        details=f"Redirects to {location}",
                        actual_url=location,
                    )
            elif response.status_code in _GONE_CODES:
                return ResolutionResult(
                    module_path=module_path,
                    status=ResolutionStatus.NOT_FOUND,
                    hosting_provider="Vanity URL",
                    details="Vanity URL not found",
                    actual_url=url,
                )
        return None


class WellKnownPatternStrategy:
    """Match the path against the well-known prefix registry."""

    name = "well-known-pattern"

    def attempt(
        self, ctx: RequestContext, module_path: str, module_info: ModuleInfo
    ) -> Optional[ResolutionResult]:
        module = get_well_known_module(module_path)
        if module is None:
            if module_info.owner and module_info.repo:
                details = "Unknown hosting provider, may be self-hosted"
            else:
                details = "Could not determine hosting provider"
            return ResolutionResult(
                module_path=module_path,
                status=ResolutionStatus.UNKNOWN,
                hosting_provider=module_info.host,
                details=details,
            )

        actual_url = ""
        mapping = get_primary_mapping(module_path)
        if mapping is not None:
            actual_url = f"https://github.com/{mapping[0]}/{mapping[1]}"
        return ResolutionResult(
            module_path=module_path,
            status=ResolutionStatus.ACTIVE,
            hosting_provider=module.hosting_provider,
            details=module.status_message,
            actual_url=actual_url,
        )


class FallbackResolver:
    """Run resolution strategies in order until one produces a result."""

    def __init__(
        self,
        strategies: Optional[Sequence[ResolutionStrategy]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_RESOLVER_TIMEOUT,
    ) -> None:
        if strategies is None:
            session = session or requests.Session()
            strategies = [
                PackageIndexStrategy(session, timeout=timeout),
                VanityURLStrategy(session, timeout=timeout),
                WellKnownPatternStrategy(),
            ]
        self.strategies: List[ResolutionStrategy] = list(strategies)

    @classmethod
    def from_config(cls, config: AnalyzerConfig, session: Optional[requests.Session] = None) -> "FallbackResolver":
        return cls(session=session, timeout=config.resolver_timeout)

    def resolve(self, ctx: RequestContext, module_path: str) -> ResolutionResult:
        module_info = classify_module_path(module_path)
        if not module_info.is_valid:
            return ResolutionResult(
                module_path=module_path,
                status=ResolutionStatus.NOT_FOUND,
                details="Invalid module path",
            )

        for strategy in self.strategies:
            result = strategy.attempt(ctx, module_path, module_info)
            if result is not None:
                logger.debug("Resolved %s via %s: %s", module_path, strategy.name, result.status.value)
                return result

        return ResolutionResult(
            module_path=module_path,
            status=ResolutionStatus.UNKNOWN,
            hosting_provider=module_info.host,
            details="Could not resolve module source",
        )
