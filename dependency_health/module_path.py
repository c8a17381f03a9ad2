"""
Module import path validation and host classification.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from .models import ModuleInfo


PRIMARY_HOST = "github.com"
PROVIDER_HOSTS: FrozenSet[str] = frozenset({"gitlab.com", "bitbucket.org"})

_ELEMENT_CHARS = re.compile(r"^[A-Za-z0-9._~-]+$")
_HOST_CHARS = re.compile(r"^[a-z0-9.-]+$")
_MAJOR_SUFFIX = re.compile(r"^v[0-9]+$")


@dataclass(frozen=True)
class WellKnownModule:
    """A path prefix owned by well-known ecosystem infrastructure."""

    prefix: str
    trusted: bool
    hosting_provider: str
    status_message: str
    mirror_owner: str = ""

    @property
    def maps_to_primary(self) -> bool:
        return bool(self.mirror_owner)


WELL_KNOWN_MODULES: Tuple[WellKnownModule, ...] = (
    WellKnownModule(
        prefix="golang.org/x/",
        trusted=True,
        hosting_provider="golang.org",
        status_message="Official Go extended package",
        mirror_owner="golang",
    ),
    WellKnownModule(
        prefix="google.golang.org/",
        trusted=True,
        hosting_provider="google.golang.org",
        status_message="Google-maintained Go package",
    ),
    WellKnownModule(
        prefix="cloud.google.com/",
        trusted=True,
        hosting_provider="cloud.google.com",
        status_message="Google Cloud Go package",
    ),
    WellKnownModule(
        prefix="go.uber.org/",
        trusted=True,
        hosting_provider="go.uber.org",
        status_message="Uber-maintained Go package",
    ),
    WellKnownModule(
        prefix="gopkg.in/",
        trusted=False,
        hosting_provider="gopkg.in",
        status_message="Versioned package proxy",
    ),
    WellKnownModule(
        prefix="k8s.io/",
        trusted=True,
        hosting_provider="k8s.io",
        status_message="Kubernetes package",
    ),
    WellKnownModule(
        prefix="sigs.k8s.io/",
        trusted=True,
        hosting_provider="sigs.k8s.io",
        status_message="Kubernetes SIG package",
    ),
    WellKnownModule(
        prefix="go.opentelemetry.io/",
        trusted=False,
        hosting_provider="go.opentelemetry.io",
        status_message="OpenTelemetry Go package",
    ),
)


def get_well_known_module(path: str) -> Optional[WellKnownModule]:
    for module in WELL_KNOWN_MODULES:
        if path.startswith(module.prefix):
            return module
    return None


def is_well_known_module(path: str) -> bool:
    return get_well_known_module(path) is not None


def get_trusted_status(path: str) -> Optional[str]:
    """Status message for a trusted prefix, or None if the path is not trusted."""
    module = get_well_known_module(path)
    if module is None or not module.trusted:
        return None
    return module.status_message


def get_primary_mapping(path: str) -> Optional[Tuple[str, str]]:
    """Return the primary-host (owner, repo) mirroring this path, if any.

    ``golang.org/x/crypto/ssh`` maps to ``("golang", "crypto")``.
    """
    module = get_well_known_module(path)
    if module is None or not module.maps_to_primary:
        return None
    repo = path[len(module.prefix):].split("/", 1)[0]
    if not repo:
        return None
    return module.mirror_owner, repo


def is_valid_module_path(path: str) -> bool:
    """Check a module path against Go import path syntax."""
    if not path or path.startswith("/") or path.endswith("/"):
        return False

    elements = path.split("/")
    for element in elements:
        if not element or not _ELEMENT_CHARS.match(element):
            return False
        if element.startswith(".") or element.endswith("."):
            return False

    host = elements[0]
    if "." not in host or host.startswith("-") or not _HOST_CHARS.match(host):
        return False

    # /v0, /v1 and zero-padded major suffixes are not allowed
    last = elements[-1]
    if len(elements) > 1 and _MAJOR_SUFFIX.match(last):
        if last in ("v0", "v1") or last.startswith("v0"):
            return False

    return True


def classify_module_path(
    path: str,
    primary_host: str = PRIMARY_HOST,
    provider_hosts: FrozenSet[str] = PROVIDER_HOSTS,
) -> ModuleInfo:
    """Split a module path into host/owner/repo and classify the host."""
    if not is_valid_module_path(path):
        return ModuleInfo()

    parts = path.split("/")
    host = parts[0]
    owner, repo = "", ""
    if len(parts) >= 3:
        owner, repo = parts[1], parts[2]

    is_primary = host == primary_host
    is_known = is_primary or host in provider_hosts or is_well_known_module(path)

    return ModuleInfo(
        host=host,
        owner=owner,
        repo=repo,
        is_primary_host=is_primary,
        is_known_host=is_known,
        is_valid=True,
    )
