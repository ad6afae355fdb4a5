"""Source code browsing: scanning, caching and archive links."""

from .archive import ArchiveLink, archive_url, probe_archive, repository_url, resolve_archive
from .cache import CodeCache, FileCodeCache, MemoryCodeCache, generate_cache_key
from .fetcher import CodeStatus, RepoContent, RepoFile, SourceBrowser, language_for

__all__ = [
    "ArchiveLink",
    "CodeCache",
    "CodeStatus",
    "FileCodeCache",
    "MemoryCodeCache",
    "RepoContent",
    "RepoFile",
    "SourceBrowser",
    "archive_url",
    "generate_cache_key",
    "language_for",
    "probe_archive",
    "repository_url",
    "resolve_archive",
]
