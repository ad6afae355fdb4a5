"""On-demand retrieval of a repository's primary source files."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Protocol

from ..config import SourceBrowserSettings, get_browser_settings
from ..github.client import GitHubAPIError, GitHubConnectivityError, GitHubNotFoundError, GitHubRateLimitError
from ..models import format_timestamp, parse_timestamp, utcnow
from .cache import CodeCache, generate_cache_key

_LOGGER = logging.getLogger(__name__)

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "rs": "rust",
    "ts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "jsx",
    "sol": "solidity",
    "py": "python",
    "go": "go",
    "c": "c",
    "cpp": "cpp",
    "h": "c",
    "hpp": "cpp",
}


def language_for(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lstrip(".").lower()
    return LANGUAGE_BY_EXTENSION.get(suffix, "text")


class CodeStatus(str, Enum):
    AVAILABLE = "available"
    NO_FILES_FOUND = "no_files_found"
    NO_CONTENT = "no_content"


@dataclass(slots=True)
class RepoFile:
    name: str
    path: str
    content: str
    language: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "path": self.path, "content": self.content, "language": self.language}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RepoFile":
        name = str(payload.get("name", ""))
        return cls(
            name=name,
            path=str(payload.get("path", name)),
            content=str(payload.get("content", "")),
            language=str(payload.get("language") or language_for(name)),
        )


@dataclass(slots=True)
class RepoContent:
    """Result of a source scan; ``status`` distinguishes the empty outcomes."""

    owner: str
    repo: str
    files: List[RepoFile] = field(default_factory=list)
    file_tree: List[Dict[str, Any]] = field(default_factory=list)
    fetched_at: Optional[datetime] = None
    status: CodeStatus = CodeStatus.AVAILABLE

    @property
    def available(self) -> bool:
        return self.status is CodeStatus.AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "repo": self.repo,
            "files": [item.to_dict() for item in self.files],
            "fileTree": [dict(entry) for entry in self.file_tree],
            "fetchedAt": format_timestamp(self.fetched_at),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RepoContent":
        return cls(
            owner=str(payload["owner"]),
            repo=str(payload["repo"]),
            files=[RepoFile.from_dict(item) for item in payload.get("files") or []],
            file_tree=[dict(entry) for entry in payload.get("fileTree") or []],
            fetched_at=parse_timestamp(payload.get("fetchedAt")),
            status=CodeStatus(payload.get("status", CodeStatus.AVAILABLE.value)),
        )


class ContentsClient(Protocol):
    async def list_contents(self, owner: str, repo: str, path: str = "") -> List[Dict[str, Any]]:
        ...

    async def fetch_raw(self, url: str) -> str:
        ...


def _is_empty_repository(exc: GitHubNotFoundError) -> bool:
    return "repository is empty" in (exc.body or "").lower()


@dataclass(slots=True)
class _ScanState:
    visited: set[str] = field(default_factory=set)
    found: List[Dict[str, Any]] = field(default_factory=list)
    found_paths: set[str] = field(default_factory=set)


class SourceBrowser:
    """Locate and download up to ``max_files`` source files of a repository.

    Priority directories are scanned first, then the repository root. A fresh
    cache entry short-circuits the scan entirely; only successful results are
    cached so an empty outcome is retried on the next request.
    """

    def __init__(
        self,
        client: ContentsClient,
        cache: CodeCache,
        settings: Optional[SourceBrowserSettings] = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._settings = settings or get_browser_settings()
        self._extensions = frozenset(self._settings.code_extensions)

    async def fetch_repo_code(
        self,
        owner: str,
        repo: str,
        *,
        deadline_seconds: Optional[float] = None,
    ) -> RepoContent:
        key = generate_cache_key(owner, repo, "code")
        cached = self._cache.get(key)
        if cached:
            try:
                content = RepoContent.from_dict(cached)
            except (KeyError, TypeError, ValueError) as exc:
                _LOGGER.warning("browser | ignoring malformed cache entry | key=%s | error=%s", key, exc)
                self._cache.clear(key)
            else:
                if content.files:
                    _LOGGER.info("browser | cache hit | repo=%s/%s | files=%s", owner, repo, len(content.files))
                    return content

        collect = self._collect(owner, repo)
        if deadline_seconds is not None:
            content = await asyncio.wait_for(collect, timeout=deadline_seconds)
        else:
            content = await collect

        if content.available:
            self._cache.set(key, content.to_dict())
        return content

    async def _collect(self, owner: str, repo: str) -> RepoContent:
        tree = await self.find_code_files(owner, repo)
        if not tree:
            _LOGGER.warning("browser | no code files found | repo=%s/%s", owner, repo)
            return RepoContent(owner=owner, repo=repo, fetched_at=utcnow(), status=CodeStatus.NO_FILES_FOUND)

        files = await self._download(tree)
        status = CodeStatus.AVAILABLE if files else CodeStatus.NO_CONTENT
        if not files:
            _LOGGER.error("browser | could not fetch any file content | repo=%s/%s", owner, repo)
        return RepoContent(
            owner=owner,
            repo=repo,
            files=files,
            file_tree=tree,
            fetched_at=utcnow(),
            status=status,
        )

    async def find_code_files(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        """Return contents-API entries for candidate source files, scan order preserved."""

        state = _ScanState()
        limit = self._settings.max_files
        for directory in self._settings.priority_dirs:
            await self._scan_path(owner, repo, directory, 0, state)
            if len(state.found) >= limit:
                return state.found[:limit]

        try:
            root_entries = await self._client.list_contents(owner, repo, "")
        except GitHubNotFoundError as exc:
            if not _is_empty_repository(exc):
                raise
            _LOGGER.info("browser | repository is empty | repo=%s/%s", owner, repo)
            return state.found[:limit]
        for entry in root_entries:
            if len(state.found) >= limit:
                break
            kind = entry.get("type")
            if kind == "file":
                self._consider(entry, state)
            elif kind == "dir" and entry.get("name") not in self._settings.priority_dirs:
                await self._scan_path(owner, repo, str(entry.get("path", "")), 1, state)
        return state.found[:limit]

    async def _scan_path(self, owner: str, repo: str, path: str, depth: int, state: _ScanState) -> None:
        if depth > self._settings.max_depth or len(state.found) >= self._settings.max_files:
            return
        if path in state.visited:
            return
        state.visited.add(path)

        try:
            entries = await self._client.list_contents(owner, repo, path)
        except GitHubNotFoundError:
            _LOGGER.debug("browser | directory absent | repo=%s/%s | path=%s", owner, repo, path)
            return
        except (GitHubRateLimitError, GitHubConnectivityError):
            raise
        except GitHubAPIError as exc:
            _LOGGER.warning("browser | failed to scan directory | path=%s | error=%s", path, exc)
            return

        for entry in entries:
            kind = entry.get("type")
            if kind == "file":
                self._consider(entry, state)
            elif kind == "dir" and depth < self._settings.max_depth:
                await self._scan_path(owner, repo, str(entry.get("path", "")), depth + 1, state)
            if len(state.found) >= self._settings.max_files:
                return

    def _consider(self, entry: Dict[str, Any], state: _ScanState) -> None:
        path = str(entry.get("path") or entry.get("name") or "")
        if not path or path in state.found_paths:
            return
        if PurePosixPath(path).suffix.lower() not in self._extensions:
            return
        try:
            size = int(entry.get("size") or 0)
        except (TypeError, ValueError):
            return
        if size > self._settings.max_file_size_bytes:
            return
        state.found.append(entry)
        state.found_paths.add(path)

    async def _download(self, tree: List[Dict[str, Any]]) -> List[RepoFile]:
        semaphore = asyncio.Semaphore(self._settings.max_concurrent_fetches)

        async def fetch(entry: Dict[str, Any]) -> RepoFile:
            async with semaphore:
                content = await self._client.fetch_raw(str(entry["download_url"]))
            name = str(entry.get("name") or PurePosixPath(str(entry["path"])).name)
            return RepoFile(name=name, path=str(entry.get("path", name)), content=content, language=language_for(name))

        downloadable = [entry for entry in tree if entry.get("download_url")]
        results = await asyncio.gather(*(fetch(entry) for entry in downloadable), return_exceptions=True)
        files: List[RepoFile] = []
        for entry, result in zip(downloadable, results):
            if isinstance(result, RepoFile):
                files.append(result)
            elif isinstance(result, GitHubRateLimitError):
                raise result
            elif isinstance(result, Exception):
                _LOGGER.warning("browser | failed to fetch file | path=%s | error=%s", entry.get("path"), result)
            else:
                raise result
        return files


__all__ = [
    "CodeStatus",
    "ContentsClient",
    "LANGUAGE_BY_EXTENSION",
    "RepoContent",
    "RepoFile",
    "SourceBrowser",
    "language_for",
]
