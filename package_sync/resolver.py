"""
Target Resolver — Turn the target map into sync targets.

Drops the source repository itself and anything that doesn't look like
a clonable `<scheme>://<host>/<owner>/<name>.git` URL.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from .models import SyncTarget, TargetMap

logger = logging.getLogger(__name__)

REPO_URL_RE = re.compile(
    r"^(?P<scheme>https?)://(?:[^@/]+@)?(?P<host>[^/@]+)/"
    r"(?P<owner>[^/]+)/(?P<name>[^/]+?)\.git/?$"
)


@dataclass(frozen=True)
class RepositoryRef:
    """Parts of a repository URL."""

    scheme: str
    host: str
    owner: str
    name: str


def parse_repository_url(url: str) -> Optional[RepositoryRef]:
    """Split a repository URL, or return None if it isn't one."""
    match = REPO_URL_RE.match(url.strip())
    if not match:
        return None
    return RepositoryRef(
        scheme=match.group("scheme").lower(),
        host=match.group("host").lower(),
        owner=match.group("owner"),
        name=match.group("name"),
    )


def canonical_url(url: str) -> str:
    """
    Normalise a repository URL for comparison.

    Lower-cases scheme and host, strips credentials and trailing slashes,
    and makes sure the URL ends in .git.
    """
    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()
    if parts.port:
        host = f"{host}:{parts.port}"
    path = parts.path.rstrip("/")
    if path and not path.endswith(".git"):
        path = f"{path}.git"
    return urlunsplit((parts.scheme.lower(), host, path, "", ""))


def repository_key(url: str) -> str:
    """Comparison key for a repository URL; owner and name are case-insensitive."""
    return canonical_url(url).casefold()


def source_repository_url(repository: str, server_url: str = "https://github.com") -> str:
    """Canonical URL of `owner/name` on the given server."""
    return canonical_url(f"{server_url.rstrip('/')}/{repository.strip('/')}.git")


def authenticated_url(url: str, token: str) -> str:
    """Inject an access token into the URL's user-info segment."""
    parts = urlsplit(canonical_url(url))
    netloc = f"x-access-token:{quote(token, safe='')}@{parts.netloc}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


def redact_url(text: str) -> str:
    """Replace user-info in any URL inside text with ***."""
    return re.sub(r"(https?://)[^/@\s]+@", r"\1***@", text)


def resolve_targets(target_map: TargetMap, source_url: str) -> List[SyncTarget]:
    """
    Build sync targets from the target map.

    The source repository is skipped silently. URLs that don't match the
    repository shape are skipped with a warning.
    """
    source = repository_key(source_url)
    targets: List[SyncTarget] = []

    for url, paths in target_map.items():
        if repository_key(url) == source:
            continue

        ref = parse_repository_url(url)
        if ref is None:
            logger.warning(f"Skipping {redact_url(url)}: not a <host>/<owner>/<name>.git URL")
            continue

        targets.append(
            SyncTarget(
                url=url,
                short_id=ref.name,
                owner=ref.owner,
                package_paths=tuple(paths),
            )
        )

    logger.info(f"Resolved {len(targets)} target repositor{'y' if len(targets) == 1 else 'ies'}")
    return targets
