"""
Repository metadata providers for source hosting platforms.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, Optional
from urllib.parse import quote

import requests

from .config import AnalyzerConfig, DEFAULT_REQUEST_TIMEOUT
from .context import RequestContext
from .errors import AuthenticationError, ProviderError, RateLimitError
from .interfaces import RepositoryProvider
from .models import RepositoryMetadata
from .module_path import PRIMARY_HOST
from .time_utils import parse_timestamp
from .versions import latest_semver


logger = logging.getLogger(__name__)


def _rate_limit_error(response: requests.Response, provider: str) -> Optional[RateLimitError]:
    """Build a RateLimitError if the response reports an exhausted quota."""
    if response.status_code not in (403, 429):
        return None
    remaining = response.headers.get("X-RateLimit-Remaining")
    if remaining != "0" and response.status_code != 429:
        return None

    reset_at = None
    reset = response.headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
    return RateLimitError(
        f"{provider} API rate limit exceeded",
        remaining=int(remaining) if remaining and remaining.isdigit() else 0,
        reset_at=reset_at,
    )


class _HTTPProvider:
    """Shared request plumbing for the REST-based providers."""

    name = ""
    hosts: FrozenSet[str] = frozenset()

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, ctx: RequestContext, url: str, **kwargs) -> requests.Response:
        timeout = ctx.timeout(self.timeout)
        logger.info("Fetching %s", url)
        try:
            return self.session.get(url, timeout=timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e

    def fetch_latest_version(self, ctx: RequestContext, owner: str, repo: str) -> str:
        return ""


class GitHubProvider(_HTTPProvider):
    """Primary provider backed by the GitHub REST API."""

    name = "GitHub"
    hosts = frozenset({PRIMARY_HOST})
    api_url = "https://api.github.com"

    def __init__(
        self,
        token: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        if not token:
            raise AuthenticationError("GitHub token is required")
        super().__init__(session=session, timeout=timeout)
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        }

    def validate(self, ctx: Optional[RequestContext] = None) -> None:
        """Check the token against a known public repository.

        Only credential and quota problems are fatal; network trouble is
        left for the real requests to report.
        """
        ctx = ctx or RequestContext(timeout=self.timeout)
        try:
            response = self._get(ctx, f"{self.api_url}/repos/golang/go", headers=self.headers)
        except ProviderError as e:
            logger.warning("Could not validate GitHub token: %s", e)
            return

        if response.status_code == 401:
            raise AuthenticationError("invalid or expired GitHub token")
        rate_limited = _rate_limit_error(response, self.name)
        if rate_limited is not None:
            raise rate_limited
        if response.status_code == 403:
            raise AuthenticationError(
                "GitHub token lacks necessary permissions to access public repositories"
            )

    def fetch_repository_metadata(
        self, ctx: RequestContext, owner: str, repo: str
    ) -> RepositoryMetadata:
        if not owner or not repo:
            raise ProviderError("owner and repo name must be provided")

        response = self._get(ctx, f"{self.api_url}/repos/{owner}/{repo}", headers=self.headers)
        if response.status_code == 404:
            return RepositoryMetadata(exists=False)
        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"invalid GitHub response for {owner}/{repo}: {e}") from e

        return RepositoryMetadata(
            exists=True,
            archived=bool(data.get("archived", False)),
            created_at=parse_timestamp(data.get("created_at") or ""),
            updated_at=parse_timestamp(data.get("updated_at") or ""),
            last_commit_at=self._fetch_last_commit_at(ctx, owner, repo),
            url=data.get("html_url") or "",
            description=data.get("description") or "",
            default_branch=data.get("default_branch") or "",
        )

    def fetch_latest_version(self, ctx: RequestContext, owner: str, repo: str) -> str:
        if not owner or not repo:
            raise ProviderError("owner and repo name must be provided")

        response = self._get(
            ctx,
            f"{self.api_url}/repos/{owner}/{repo}/tags",
            headers=self.headers,
            params={"per_page": 100},
        )
        if response.status_code == 404:
            raise ProviderError("repository not found")
        self._raise_for_status(response)

        try:
            tags = response.json()
        except ValueError as e:
            raise ProviderError(f"invalid GitHub tags response: {e}") from e
        if not tags:
            raise ProviderError("no tags found in repository")
        return latest_semver(tag.get("name", "") for tag in tags)

    def _fetch_last_commit_at(self, ctx: RequestContext, owner: str, repo: str) -> Optional[datetime]:
        # Commit history is optional; any failure other than cancellation leaves it unset
        try:
            response = self._get(
                ctx,
                f"{self.api_url}/repos/{owner}/{repo}/commits",
                headers=self.headers,
                params={"per_page": 1},
            )
        except ProviderError as e:
            logger.debug("Skipping commit lookup for %s/%s: %s", owner, repo, e)
            return None
        if response.status_code != 200:
            return None
        try:
            commits = response.json()
        except ValueError:
            return None
        if not commits:
            return None
        committer = (commits[0].get("commit") or {}).get("committer") or {}
        return parse_timestamp(committer.get("date") or "")

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.status_code == 200:
            return
        rate_limited = _rate_limit_error(response, self.name)
        if rate_limited is not None:
            raise rate_limited
        if response.status_code == 401:
            raise AuthenticationError("GitHub API authentication failed (check your token)")
        if response.status_code == 403:
            raise ProviderError("GitHub API access forbidden")
        raise ProviderError(f"GitHub API returned status {response.status_code}")


class GitLabProvider(_HTTPProvider):
    """Provider for gitlab.com projects."""

    name = "GitLab"
    hosts = frozenset({"gitlab.com"})
    api_url = "https://gitlab.com/api/v4"

    def fetch_repository_metadata(
        self, ctx: RequestContext, owner: str, repo: str
    ) -> RepositoryMetadata:
        project = quote(f"{owner}/{repo}", safe="")
        response = self._get(ctx, f"{self.api_url}/projects/{project}")
        if response.status_code == 404:
            return RepositoryMetadata(exists=False)
        rate_limited = _rate_limit_error(response, self.name)
        if rate_limited is not None:
            raise rate_limited
        if response.status_code != 200:
            raise ProviderError(f"GitLab API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"invalid GitLab response: {e}") from e

        last_activity = parse_timestamp(data.get("last_activity_at") or "")
        return RepositoryMetadata(
            exists=True,
            archived=bool(data.get("archived", False)),
            created_at=parse_timestamp(data.get("created_at") or ""),
            updated_at=last_activity,
            last_commit_at=last_activity,
            url=data.get("web_url") or "",
            description=data.get("description") or "",
            default_branch=data.get("default_branch") or "",
        )


class BitbucketProvider(_HTTPProvider):
    """Provider for bitbucket.org repositories."""

    name = "Bitbucket"
    hosts = frozenset({"bitbucket.org"})
    api_url = "https://api.bitbucket.org/2.0"

    def fetch_repository_metadata(
        self, ctx: RequestContext, owner: str, repo: str
    ) -> RepositoryMetadata:
        response = self._get(ctx, f"{self.api_url}/repositories/{owner}/{repo}")
        if response.status_code == 404:
            return RepositoryMetadata(exists=False)
        rate_limited = _rate_limit_error(response, self.name)
        if rate_limited is not None:
            raise rate_limited
        if response.status_code != 200:
            raise ProviderError(f"Bitbucket API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"invalid Bitbucket response: {e}") from e

        updated_on = parse_timestamp(data.get("updated_on") or "")
        return RepositoryMetadata(
            exists=True,
            # The repositories endpoint has no archived flag
            archived=False,
            created_at=parse_timestamp(data.get("created_on") or ""),
            updated_at=updated_on,
            last_commit_at=updated_on,
            url=((data.get("links") or {}).get("html") or {}).get("href") or "",
            description=data.get("description") or "",
            default_branch=(data.get("mainbranch") or {}).get("name") or "",
        )


class ProviderRegistry:
    """Providers keyed by the host they serve."""

    def __init__(
        self,
        providers: Iterable[RepositoryProvider] = (),
        primary_host: str = PRIMARY_HOST,
    ) -> None:
        self.primary_host = primary_host
        self._by_host: Dict[str, RepositoryProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: RepositoryProvider) -> None:
        for host in provider.hosts:
            self._by_host[host] = provider

    def get(self, host: str) -> Optional[RepositoryProvider]:
        return self._by_host.get(host)

    @property
    def primary(self) -> Optional[RepositoryProvider]:
        return self._by_host.get(self.primary_host)

    @property
    def secondary_hosts(self) -> FrozenSet[str]:
        return frozenset(host for host in self._by_host if host != self.primary_host)

    def __contains__(self, host: str) -> bool:
        return host in self._by_host


def build_default_registry(
    config: AnalyzerConfig,
    session: Optional[requests.Session] = None,
    validate: bool = True,
) -> ProviderRegistry:
    """Construct the GitHub, GitLab and Bitbucket providers.

    Raises AuthenticationError or RateLimitError when the primary provider
    cannot be used, since nothing could be classified without it.
    """
    session = session or requests.Session()
    github = GitHubProvider(config.token, session=session, timeout=config.request_timeout)
    if validate:
        github.validate()

    return ProviderRegistry(
        [
            github,
            GitLabProvider(session=session, timeout=config.request_timeout),
            BitbucketProvider(session=session, timeout=config.request_timeout),
        ]
    )
