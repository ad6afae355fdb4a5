"""Read path: serve the catalog from memory, the relational mirror or the bundled snapshot."""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Callable, List, Optional, Protocol

from ..config import CatalogDatabaseSettings, CatalogReadSettings, get_database_settings, get_read_settings
from ..errors import CatalogIntegrityError
from ..models import CatalogSnapshot, ProgramRecord

_LOGGER = logging.getLogger(__name__)


class RecordReader(Protocol):
    """Anything able to return the full record set (the relational mirror in production)."""

    def read_records(self) -> List[ProgramRecord]:
        ...


class SnapshotCache:
    """Holds one snapshot for ``ttl_seconds``; owned by whoever builds the resolver."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[CatalogSnapshot] = None
        self._stored_at = 0.0

    def get(self) -> Optional[CatalogSnapshot]:
        with self._lock:
            if self._snapshot is None:
                return None
            if self._clock() - self._stored_at >= self._ttl:
                self._snapshot = None
                return None
            return self._snapshot

    def put(self, snapshot: CatalogSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._stored_at = self._clock()

    def reset(self) -> None:
        with self._lock:
            self._snapshot = None
            self._stored_at = 0.0


def load_bundled_snapshot(settings: CatalogReadSettings) -> CatalogSnapshot:
    """Load the snapshot shipped with the package; failures here are packaging defects."""

    path = settings.bundled_catalog_path
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CatalogIntegrityError(f"Bundled catalog {path} is not valid JSON: {exc}") from exc
    return CatalogSnapshot.from_dict(payload, source="bundled")


class CatalogResolver:
    """Resolve the catalog snapshot served to readers.

    Resolution order is: a fresh in-memory snapshot, then the bundled file when
    running a static build, then the relational mirror, then the bundled file
    again as the fallback for any mirror failure.
    """

    def __init__(
        self,
        settings: Optional[CatalogReadSettings] = None,
        reader: Optional[RecordReader] = None,
        cache: Optional[SnapshotCache] = None,
        *,
        database_settings: Optional[CatalogDatabaseSettings] = None,
    ) -> None:
        self._settings = settings or get_read_settings()
        self._database_settings = database_settings
        self._reader = reader
        self._reader_resolved = reader is not None
        self._cache = cache or SnapshotCache(self._settings.freshness_seconds)

    @property
    def cache(self) -> SnapshotCache:
        return self._cache

    def _get_reader(self) -> Optional[RecordReader]:
        if not self._reader_resolved:
            from ..db.mirror import build_mirror

            self._reader = build_mirror(self._database_settings or get_database_settings())
            self._reader_resolved = True
        return self._reader

    def load_catalog(self) -> CatalogSnapshot:
        cached = self._cache.get()
        if cached is not None:
            return cached

        if self._settings.static_build:
            snapshot = load_bundled_snapshot(self._settings)
            self._cache.put(snapshot)
            return snapshot

        snapshot = self._read_from_database()
        if snapshot is None:
            snapshot = load_bundled_snapshot(self._settings)
            _LOGGER.info("catalog | serving bundled snapshot | records=%s", snapshot.total_repos)
        self._cache.put(snapshot)
        return snapshot

    def _read_from_database(self) -> Optional[CatalogSnapshot]:
        try:
            reader = self._get_reader()
            if reader is None:
                _LOGGER.debug("catalog | relational store not configured")
                return None
            records = reader.read_records()
        except Exception as exc:  # noqa: BLE001 - every mirror failure degrades to the bundled file
            _LOGGER.warning("catalog | relational read failed | error=%s: %s", type(exc).__name__, exc)
            return None
        if not records:
            _LOGGER.warning("catalog | relational store returned no rows")
            return None
        return CatalogSnapshot.build(records, source="database")


def load_catalog(resolver: Optional[CatalogResolver] = None) -> CatalogSnapshot:
    """Convenience wrapper building a resolver from environment settings when none is given."""

    return (resolver or CatalogResolver()).load_catalog()


__all__ = [
    "CatalogResolver",
    "RecordReader",
    "SnapshotCache",
    "load_bundled_snapshot",
    "load_catalog",
]
