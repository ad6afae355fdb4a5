from __future__ import annotations

from typing import Any, Dict, List

import pytest

from progcatalog.browser.archive import archive_url, probe_archive, resolve_archive
from progcatalog.config import SourceBrowserSettings
from progcatalog.github.client import GitHubAPIError, GitHubNotFoundError, GitHubRateLimitError


class _DummyArchiveClient:
    def __init__(self, *, metadata: Dict[str, Any] | None = None, error: Exception | None = None,
                 live_branches: set[str] | None = None) -> None:
        self._metadata = metadata
        self._error = error
        self._live = live_branches or set()
        self.probed: List[str] = []

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        if self._error is not None:
            raise self._error
        return dict(self._metadata or {})

    async def url_exists(self, url: str) -> bool:
        self.probed.append(url)
        return any(url.endswith(f"/{branch}.zip") for branch in self._live)


@pytest.fixture()
def settings() -> SourceBrowserSettings:
    return SourceBrowserSettings(fallback_branches=["main", "master", "dev", "develop"])


def test_archive_url_format() -> None:
    assert archive_url("o", "r", "trunk") == "https://github.com/o/r/archive/refs/heads/trunk.zip"


@pytest.mark.asyncio
async def test_declared_default_branch_is_used_without_probing(settings) -> None:
    client = _DummyArchiveClient(metadata={"default_branch": "trunk"})

    link = await resolve_archive(client, "o", "r", settings=settings)

    assert link is not None
    assert link.branch == "trunk"
    assert link.resolved_by == "declared"
    assert link.url == archive_url("o", "r", "trunk")
    assert client.probed == []


@pytest.mark.asyncio
async def test_failed_lookup_falls_back_to_probing_in_order(settings) -> None:
    client = _DummyArchiveClient(error=GitHubAPIError("server error", status=502), live_branches={"dev"})

    link = await resolve_archive(client, "o", "r", settings=settings)

    assert link is not None
    assert link.branch == "dev"
    assert link.resolved_by == "probed"
    assert client.probed == [archive_url("o", "r", branch) for branch in ("main", "master", "dev")]


@pytest.mark.asyncio
async def test_no_live_candidate_returns_none(settings) -> None:
    client = _DummyArchiveClient(error=GitHubNotFoundError("gone", status=404))

    assert await resolve_archive(client, "o", "r", settings=settings) is None
    assert len(client.probed) == 4


@pytest.mark.asyncio
async def test_rate_limit_is_not_masked_by_probing(settings) -> None:
    client = _DummyArchiveClient(error=GitHubRateLimitError("quota", status=403))

    with pytest.raises(GitHubRateLimitError):
        await resolve_archive(client, "o", "r", settings=settings)
    assert client.probed == []


@pytest.mark.asyncio
async def test_probe_deduplicates_candidates() -> None:
    client = _DummyArchiveClient(live_branches=set())

    await probe_archive(client, "o", "r", ["main", None, "main", "master"])

    assert client.probed == [archive_url("o", "r", "main"), archive_url("o", "r", "master")]
