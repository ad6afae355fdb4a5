"""Download links for repository zip archives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence

from ..config import SourceBrowserSettings, get_browser_settings
from ..github.client import GitHubAPIError, GitHubRateLimitError

_LOGGER = logging.getLogger(__name__)


def archive_url(owner: str, repo: str, branch: str = "main", *, host: str = "github.com") -> str:
    return f"https://{host}/{owner}/{repo}/archive/refs/heads/{branch}.zip"


def repository_url(owner: str, repo: str, *, host: str = "github.com") -> str:
    return f"https://{host}/{owner}/{repo}"


class ArchiveClient(Protocol):
    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        ...

    async def url_exists(self, url: str) -> bool:
        ...


@dataclass(frozen=True, slots=True)
class ArchiveLink:
    url: str
    branch: str
    # "declared" when read from repository metadata, "probed" when guessed
    resolved_by: str


async def resolve_archive(
    client: ArchiveClient,
    owner: str,
    repo: str,
    *,
    settings: Optional[SourceBrowserSettings] = None,
    candidates: Optional[Sequence[str]] = None,
) -> Optional[ArchiveLink]:
    """Find a working archive link for ``owner/repo``.

    The declared default branch is used whenever the repository lookup
    succeeds. Only when it fails are the fallback branch names probed in
    order. Returns ``None`` when no candidate answers.
    """

    settings = settings or get_browser_settings()
    host = settings.archive_host
    try:
        metadata = await client.get_repository(owner, repo)
    except GitHubRateLimitError:
        raise
    except GitHubAPIError as exc:
        _LOGGER.info("archive | default branch lookup failed | repo=%s/%s | error=%s", owner, repo, exc)
    else:
        branch = metadata.get("default_branch")
        if branch:
            return ArchiveLink(url=archive_url(owner, repo, branch, host=host), branch=branch, resolved_by="declared")

    return await probe_archive(client, owner, repo, candidates or settings.fallback_branches, host=host)


async def probe_archive(
    client: ArchiveClient,
    owner: str,
    repo: str,
    branches: Sequence[Optional[str]],
    *,
    host: str = "github.com",
) -> Optional[ArchiveLink]:
    """HEAD each candidate archive in order and return the first that answers."""

    for branch in dict.fromkeys(branch for branch in branches if branch):
        url = archive_url(owner, repo, branch, host=host)
        try:
            if await client.url_exists(url):
                return ArchiveLink(url=url, branch=branch, resolved_by="probed")
        except GitHubAPIError as exc:
            _LOGGER.warning("archive | probe failed | url=%s | error=%s", url, exc)
    return None


__all__ = [
    "ArchiveClient",
    "ArchiveLink",
    "archive_url",
    "probe_archive",
    "repository_url",
    "resolve_archive",
]
