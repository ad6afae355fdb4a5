from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict

import pytest

from progcatalog.config import CollectorSettings
from progcatalog.github.client import (
    GitHubAccessDeniedError,
    GitHubAPIError,
    GitHubClient,
    GitHubNotFoundError,
    GitHubRateLimitError,
    _raise_for_status,
)


class _FakeResponse:
    def __init__(self, status: int, body: str = "", headers: Dict[str, str] | None = None) -> None:
        self.status = status
        self.reason = "reason"
        self.headers = headers or {}
        self._body = body

    async def text(self) -> str:
        return self._body


@pytest.mark.asyncio
async def test_success_status_passes() -> None:
    await _raise_for_status(_FakeResponse(200))


@pytest.mark.asyncio
async def test_not_found_maps_to_specific_error() -> None:
    with pytest.raises(GitHubNotFoundError) as excinfo:
        await _raise_for_status(_FakeResponse(404, '{"message": "Not Found"}'))
    assert excinfo.value.status == 404


@pytest.mark.asyncio
async def test_exhausted_quota_maps_to_rate_limit() -> None:
    headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1767225600"}

    with pytest.raises(GitHubRateLimitError) as excinfo:
        await _raise_for_status(_FakeResponse(403, "forbidden", headers))

    assert excinfo.value.reset_at == datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, body",
    [(429, ""), (403, "API rate limit exceeded for 1.2.3.4")],
)
async def test_secondary_rate_limits_are_recognised(status: int, body: str) -> None:
    with pytest.raises(GitHubRateLimitError):
        await _raise_for_status(_FakeResponse(status, body))


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 451])
async def test_access_denied_statuses(status: int) -> None:
    with pytest.raises(GitHubAccessDeniedError):
        await _raise_for_status(_FakeResponse(status, "Repository access blocked", {"X-RateLimit-Remaining": "42"}))


@pytest.mark.asyncio
async def test_other_failures_keep_status_and_body() -> None:
    with pytest.raises(GitHubAPIError) as excinfo:
        await _raise_for_status(_FakeResponse(502, "bad gateway"))

    assert type(excinfo.value) is GitHubAPIError
    assert excinfo.value.status == 502
    assert excinfo.value.body == "bad gateway"


def test_headers_include_token_only_when_configured(tmp_path) -> None:
    anonymous = GitHubClient(CollectorSettings(storage_root=tmp_path, github_token=None))
    authenticated = GitHubClient(CollectorSettings(storage_root=tmp_path, github_token="ghp_test"))

    assert "Authorization" not in anonymous._headers()
    assert authenticated._headers()["Authorization"] == "token ghp_test"
    assert authenticated._headers()["User-Agent"] == "progcatalog-discovery"


@pytest.mark.asyncio
async def test_client_requires_context_manager(tmp_path) -> None:
    client = GitHubClient(CollectorSettings(storage_root=tmp_path))

    with pytest.raises(RuntimeError):
        await client.search_repositories("solana")
