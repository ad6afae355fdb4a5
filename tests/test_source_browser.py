from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from progcatalog.browser.cache import MemoryCodeCache, generate_cache_key
from progcatalog.browser.fetcher import CodeStatus, RepoContent, SourceBrowser, language_for
from progcatalog.config import SourceBrowserSettings
from progcatalog.github.client import GitHubAPIError, GitHubNotFoundError, GitHubRateLimitError


def _file(path: str, size: int = 100) -> Dict[str, Any]:
    name = path.rsplit("/", 1)[-1]
    return {
        "type": "file",
        "name": name,
        "path": path,
        "size": size,
        "download_url": f"https://raw.example/{path}",
    }


def _dir(path: str) -> Dict[str, Any]:
    return {"type": "dir", "name": path.rsplit("/", 1)[-1], "path": path}


class _DummyContentsClient:
    """Serves a fixed directory tree; unknown paths answer 404."""

    def __init__(self, tree: Dict[str, List[Dict[str, Any]]], *, failing_downloads: set[str] | None = None) -> None:
        self._tree = tree
        self._failing = failing_downloads or set()
        self.listed: List[str] = []
        self.downloads: List[str] = []

    async def list_contents(self, owner: str, repo: str, path: str = "") -> List[Dict[str, Any]]:
        self.listed.append(path)
        if path not in self._tree:
            raise GitHubNotFoundError(f"{path} missing", status=404)
        return self._tree[path]

    async def fetch_raw(self, url: str) -> str:
        self.downloads.append(url)
        if url in self._failing:
            raise GitHubAPIError("boom", status=500)
        return f"// contents of {url}"


@pytest.fixture()
def settings() -> SourceBrowserSettings:
    return SourceBrowserSettings(
        priority_dirs=["src", "programs"],
        max_files=5,
        max_depth=2,
        max_concurrent_fetches=2,
    )


@pytest.mark.asyncio
async def test_repository_without_code_reports_no_files_found(settings) -> None:
    client = _DummyContentsClient(
        {
            "": [_file("README.md"), _file("huge.rs", size=500_000), _dir("docs")],
            "docs": [_file("docs/guide.md")],
        }
    )
    cache = MemoryCodeCache()
    browser = SourceBrowser(client, cache, settings)

    content = await browser.fetch_repo_code("o", "r")

    assert content.status is CodeStatus.NO_FILES_FOUND
    assert content.files == []
    assert not content.available
    assert cache.get(generate_cache_key("o", "r", "code")) is None


@pytest.mark.asyncio
async def test_second_fetch_is_served_from_cache(settings) -> None:
    client = _DummyContentsClient({"src": [_file("src/lib.rs")], "": [_file("Cargo.toml")]})
    browser = SourceBrowser(client, MemoryCodeCache(), settings)

    first = await browser.fetch_repo_code("o", "r")
    scans_after_first = len(client.listed)
    second = await browser.fetch_repo_code("o", "r")

    assert first.available
    assert [item.path for item in second.files] == ["src/lib.rs"]
    assert len(client.listed) == scans_after_first
    assert len(client.downloads) == 1


@pytest.mark.asyncio
async def test_priority_directories_are_scanned_before_root(settings) -> None:
    client = _DummyContentsClient(
        {
            "src": [_file("src/main.ts")],
            "programs": [_dir("programs/vault")],
            "programs/vault": [_file("programs/vault/lib.rs"), _dir("programs/vault/src")],
            "programs/vault/src": [_file("programs/vault/src/state.rs")],
            "": [_file("index.js"), _dir("src"), _dir("scripts")],
            "scripts": [_file("scripts/deploy.ts")],
        }
    )
    browser = SourceBrowser(client, MemoryCodeCache(), settings)

    tree = await browser.find_code_files("o", "r")

    assert [entry["path"] for entry in tree] == [
        "src/main.ts",
        "programs/vault/lib.rs",
        "programs/vault/src/state.rs",
        "index.js",
        "scripts/deploy.ts",
    ]
    assert client.listed.count("src") == 1


@pytest.mark.asyncio
async def test_scan_respects_file_limit_and_depth() -> None:
    settings = SourceBrowserSettings(priority_dirs=["src"], max_files=2, max_depth=1)
    client = _DummyContentsClient(
        {
            "src": [_dir("src/a")],
            "src/a": [_dir("src/a/b"), _file("src/a/one.rs")],
            "src/a/b": [_file("src/a/b/deep.rs")],
            "": [_file("x.rs"), _file("y.rs"), _file("z.rs")],
        }
    )
    browser = SourceBrowser(client, MemoryCodeCache(), settings)

    tree = await browser.find_code_files("o", "r")

    assert [entry["path"] for entry in tree] == ["src/a/one.rs", "x.rs"]
    assert "src/a/b" not in client.listed


@pytest.mark.asyncio
async def test_single_failed_download_is_skipped(settings) -> None:
    client = _DummyContentsClient(
        {"src": [_file("src/lib.rs"), _file("src/bad.rs")], "": []},
        failing_downloads={"https://raw.example/src/bad.rs"},
    )
    browser = SourceBrowser(client, MemoryCodeCache(), settings)

    content = await browser.fetch_repo_code("o", "r")

    assert content.available
    assert [item.path for item in content.files] == ["src/lib.rs"]
    assert content.files[0].language == "rust"
    assert len(content.file_tree) == 2


@pytest.mark.asyncio
async def test_all_downloads_failing_reports_no_content(settings) -> None:
    client = _DummyContentsClient(
        {"src": [_file("src/lib.rs")], "": []},
        failing_downloads={"https://raw.example/src/lib.rs"},
    )
    cache = MemoryCodeCache()
    browser = SourceBrowser(client, cache, settings)

    content = await browser.fetch_repo_code("o", "r")

    assert content.status is CodeStatus.NO_CONTENT
    assert cache.get(generate_cache_key("o", "r", "code")) is None


@pytest.mark.asyncio
async def test_missing_repository_raises_instead_of_reporting_empty(settings) -> None:
    browser = SourceBrowser(_DummyContentsClient({}), MemoryCodeCache(), settings)

    with pytest.raises(GitHubNotFoundError):
        await browser.fetch_repo_code("o", "gone")


@pytest.mark.asyncio
async def test_empty_repository_reports_no_files_found(settings) -> None:
    class _EmptyRepoClient(_DummyContentsClient):
        async def list_contents(self, owner: str, repo: str, path: str = "") -> List[Dict[str, Any]]:
            self.listed.append(path)
            raise GitHubNotFoundError("empty", status=404, body='{"message":"This repository is empty."}')

    client = _EmptyRepoClient({})
    cache = MemoryCodeCache()
    browser = SourceBrowser(client, cache, settings)

    content = await browser.fetch_repo_code("o", "empty")

    assert content.status is CodeStatus.NO_FILES_FOUND
    assert content.files == []
    assert client.listed[-1] == ""
    assert cache.get(generate_cache_key("o", "empty", "code")) is None


@pytest.mark.asyncio
async def test_rate_limit_during_scan_propagates(settings) -> None:
    class _LimitedClient(_DummyContentsClient):
        async def list_contents(self, owner: str, repo: str, path: str = "") -> List[Dict[str, Any]]:
            raise GitHubRateLimitError("quota", status=403)

    browser = SourceBrowser(_LimitedClient({}), MemoryCodeCache(), settings)

    with pytest.raises(GitHubRateLimitError):
        await browser.fetch_repo_code("o", "r")


@pytest.mark.asyncio
async def test_deadline_bounds_the_fetch(settings) -> None:
    class _SlowClient(_DummyContentsClient):
        async def list_contents(self, owner: str, repo: str, path: str = "") -> List[Dict[str, Any]]:
            await asyncio.sleep(5)
            return []

    browser = SourceBrowser(_SlowClient({}), MemoryCodeCache(), settings)

    with pytest.raises(asyncio.TimeoutError):
        await browser.fetch_repo_code("o", "r", deadline_seconds=0.05)


@pytest.mark.asyncio
async def test_cached_entry_without_files_is_refetched(settings) -> None:
    cache = MemoryCodeCache()
    stale = RepoContent(owner="o", repo="r", status=CodeStatus.AVAILABLE)
    cache.set(generate_cache_key("o", "r", "code"), stale.to_dict())
    client = _DummyContentsClient({"src": [_file("src/lib.rs")], "": []})

    content = await SourceBrowser(client, cache, settings).fetch_repo_code("o", "r")

    assert [item.path for item in content.files] == ["src/lib.rs"]
    assert client.listed


def test_language_for_known_and_unknown_extensions() -> None:
    assert language_for("lib.rs") == "rust"
    assert language_for("App.TSX") == "tsx"
    assert language_for("Makefile") == "text"
