"""Time-bounded caches for fetched repository code."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Tuple
from urllib.parse import quote

_LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


def _escape(part: str) -> str:
    return quote(part, safe="").replace("-", "%2D")


def generate_cache_key(owner: str, repo: str, kind: str) -> str:
    """Join the parts with ``-``; hyphens inside a part are percent-encoded."""

    return "-".join(_escape(part) for part in (owner, repo, kind))


class CodeCache(Protocol):
    """Key/value cache whose entries expire ``ttl_seconds`` after being written."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, data: Any) -> None:
        ...

    def clear(self, key: Optional[str] = None) -> None:
        ...


class MemoryCodeCache:
    """In-process cache; stale entries are dropped when read."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            timestamp, data = entry
            if self._clock() - timestamp > self._ttl:
                del self._entries[key]
                return None
            return data

    def set(self, key: str, data: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), data)

    def clear(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


class FileCodeCache:
    """One JSON file per key holding ``{"timestamp": <epoch seconds>, "data": ...}``."""

    def __init__(
        self,
        directory: Path,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory)
        self._ttl = float(ttl_seconds)
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
            timestamp = float(entry["timestamp"])
        except (OSError, ValueError, KeyError, TypeError) as exc:
            _LOGGER.warning("cache | discarding unreadable entry | key=%s | error=%s", key, exc)
            path.unlink(missing_ok=True)
            return None
        if self._clock() - timestamp > self._ttl:
            _LOGGER.debug("cache | expired | key=%s", key)
            path.unlink(missing_ok=True)
            return None
        return entry.get("data")

    def set(self, key: str, data: Any) -> None:
        entry = {"timestamp": self._clock(), "data": data}
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(json.dumps(entry, indent=2), encoding="utf-8")
        except OSError as exc:
            _LOGGER.warning("cache | failed to write entry | key=%s | error=%s", key, exc)

    def clear(self, key: Optional[str] = None) -> None:
        if key is not None:
            self._path(key).unlink(missing_ok=True)
            return
        if not self._directory.exists():
            return
        for path in self._directory.glob("*.json"):
            path.unlink(missing_ok=True)


__all__ = [
    "CodeCache",
    "DEFAULT_TTL_SECONDS",
    "FileCodeCache",
    "MemoryCodeCache",
    "generate_cache_key",
]
