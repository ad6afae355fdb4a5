"""Client utilities for interacting with the GitHub REST API."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import aiohttp
from aiohttp import ClientResponse, ClientSession
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import CollectorSettings

_LOGGER = logging.getLogger(__name__)
_USER_AGENT = "progcatalog-discovery"
_TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an unusable response."""

    def __init__(self, message: str, *, status: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class GitHubNotFoundError(GitHubAPIError):
    """Raised on HTTP 404: the repository or path no longer resolves."""


class GitHubAccessDeniedError(GitHubAPIError):
    """Raised when GitHub refuses access (private repository, blocked, permission error)."""


class GitHubRateLimitError(GitHubAPIError):
    """Raised when the API quota is exhausted; callers should stop the current run."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: Optional[str] = None,
        reset_at: Optional[datetime] = None,
    ) -> None:
        super().__init__(message, status=status, body=body)
        self.reset_at = reset_at


class GitHubConnectivityError(GitHubAPIError):
    """Raised when GitHub could not be reached after retries."""


def _reset_time(headers: Mapping[str, str]) -> Optional[datetime]:
    raw = headers.get("X-RateLimit-Reset")
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError):
        return None


async def _raise_for_status(response: ClientResponse) -> None:
    status = response.status
    if status < 400:
        return
    body = await response.text()
    message = f"GitHub request failed with {status}: {response.reason}. Body: {body[:200]}"
    if status == 404:
        raise GitHubNotFoundError(message, status=status, body=body)
    remaining = response.headers.get("X-RateLimit-Remaining")
    if status == 429 or (status == 403 and (remaining == "0" or "rate limit" in body.lower())):
        reset_at = _reset_time(response.headers)
        if reset_at:
            _LOGGER.warning("github | rate limit exhausted | resets_at=%s", reset_at.isoformat())
        raise GitHubRateLimitError(message, status=status, body=body, reset_at=reset_at)
    if status in (401, 403, 451):
        raise GitHubAccessDeniedError(message, status=status, body=body)
    raise GitHubAPIError(message, status=status, body=body)


def _safe_join(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


class GitHubClient:
    """Asynchronous client for the GitHub v3 REST API."""

    def __init__(self, settings: CollectorSettings):
        self._settings = settings
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "GitHubClient":
        timeout = aiohttp.ClientTimeout(total=self._settings.request_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout, headers=self._headers())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": _USER_AGENT,
        }
        if self._settings.github_token:
            headers["Authorization"] = f"token {self._settings.github_token}"
        return headers

    def _require_session(self) -> ClientSession:
        if not self._session:
            raise RuntimeError("Client session not initialized. Use as an async context manager.")
        return self._session

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._settings.retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        )

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        session = self._require_session()
        try:
            async for attempt in self._retrying():
                with attempt:
                    async with session.get(url, params=params) as response:
                        await _raise_for_status(response)
                        return await response.json()
        except _TRANSIENT_ERRORS as exc:
            raise GitHubConnectivityError(f"GitHub unreachable for {url}: {exc!r}") from exc
        raise AssertionError("unreachable")  # pragma: no cover

    def _api_url(self, path: str) -> str:
        return _safe_join(str(self._settings.github_api_base), path)

    async def search_repositories(
        self,
        query: str,
        *,
        page: int = 1,
        per_page: Optional[int] = None,
        sort: str = "updated",
        order: str = "desc",
    ) -> List[Dict[str, Any]]:
        params = {
            "q": query,
            "sort": sort,
            "order": order,
            "per_page": min(per_page or self._settings.per_page, 100),
            "page": max(1, page),
        }
        payload = await self._get_json(self._api_url("search/repositories"), params=params)
        return list(payload.get("items", []))

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._get_json(self._api_url(f"repos/{quote(owner)}/{quote(repo)}"))

    async def list_contents(self, owner: str, repo: str, path: str = "") -> List[Dict[str, Any]]:
        """List a directory; a file path yields a single-entry list."""

        suffix = quote(path.strip("/"))
        url = self._api_url(f"repos/{quote(owner)}/{quote(repo)}/contents/{suffix}")
        payload = await self._get_json(url)
        if isinstance(payload, list):
            return payload
        return [payload]

    async def fetch_raw(self, url: str) -> str:
        session = self._require_session()
        try:
            async for attempt in self._retrying():
                with attempt:
                    async with session.get(url) as response:
                        await _raise_for_status(response)
                        return await response.text()
        except _TRANSIENT_ERRORS as exc:
            raise GitHubConnectivityError(f"Failed to download {url}: {exc!r}") from exc
        raise AssertionError("unreachable")  # pragma: no cover

    async def url_exists(self, url: str) -> bool:
        """Return whether ``url`` answers a HEAD request successfully (redirects followed)."""

        session = self._require_session()
        try:
            async with session.head(url, allow_redirects=True) as response:
                return response.status < 400
        except _TRANSIENT_ERRORS as exc:
            raise GitHubConnectivityError(f"Failed to probe {url}: {exc!r}") from exc

    async def rate_limit(self) -> Dict[str, Any]:
        payload = await self._get_json(self._api_url("rate_limit"))
        return dict(payload.get("resources", {}))


__all__ = [
    "GitHubAPIError",
    "GitHubAccessDeniedError",
    "GitHubClient",
    "GitHubConnectivityError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
]
