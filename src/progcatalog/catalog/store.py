"""Deduplicating merge and atomic persistence of the JSON catalog."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..errors import CatalogIntegrityError
from ..models import CatalogSnapshot, ProgramRecord

_LOGGER = logging.getLogger(__name__)

# Serialises read-modify-write cycles within this process.
_MERGE_LOCK = threading.Lock()


@dataclass(slots=True)
class MergeResult:
    records: List[ProgramRecord]
    added: int = 0
    updated: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "added": self.added,
            "updated": self.updated,
            "skipped": self.skipped,
            "total": len(self.records),
        }


def _refresh(current: ProgramRecord, incoming: ProgramRecord) -> ProgramRecord:
    return replace(
        current,
        url=incoming.url or current.url,
        description=incoming.description,
        stars=incoming.stars,
        language=incoming.language,
        topics=list(incoming.topics),
        updated=incoming.updated,
        default_branch=incoming.default_branch or current.default_branch,
        category=incoming.category or current.category,
        sub_category=incoming.sub_category or current.sub_category,
        extra=dict(current.extra),
    )


def merge(existing: Sequence[ProgramRecord], incoming: Iterable[ProgramRecord]) -> MergeResult:
    """Fold ``incoming`` into ``existing`` keyed by case-insensitive identity.

    Existing records keep their position and their first-observation time;
    unseen identities are appended in batch order. When a batch repeats an
    identity the last occurrence wins.
    """

    merged: List[ProgramRecord] = []
    positions: Dict[str, int] = {}
    for record in existing:
        identity = record.identity
        if identity is None or identity in positions:
            merged.append(record)
            continue
        positions[identity] = len(merged)
        merged.append(record)

    batch: Dict[str, ProgramRecord] = {}
    skipped = 0
    for record in incoming:
        identity = record.identity
        if identity is None:
            skipped += 1
            _LOGGER.debug("catalog | skipping record without identity | full_name=%r", record.full_name)
            continue
        batch[identity] = record

    added = 0
    updated = 0
    for identity, record in batch.items():
        if identity in positions:
            index = positions[identity]
            refreshed = _refresh(merged[index], record)
            if refreshed != merged[index]:
                updated += 1
            merged[index] = refreshed
            continue
        positions[identity] = len(merged)
        merged.append(replace(record, topics=list(record.topics), extra=dict(record.extra)))
        added += 1

    return MergeResult(records=merged, added=added, updated=updated, skipped=skipped)


class CatalogStore:
    """Reads and atomically rewrites the catalog JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> CatalogSnapshot:
        """Return the stored snapshot, or an empty one when no catalog exists yet."""

        if not self._path.exists():
            return CatalogSnapshot.build([], source="file")
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CatalogIntegrityError(f"Catalog {self._path} is not valid JSON: {exc}") from exc
        return CatalogSnapshot.from_dict(payload, source="file")

    def save(self, snapshot: CatalogSnapshot) -> None:
        document = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        handle, temp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(document)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(temp_name, self._path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        _LOGGER.info("catalog | saved | path=%s | records=%s", self._path, snapshot.total_repos)

    def merge_and_save(
        self,
        incoming: Iterable[ProgramRecord],
        keywords: Optional[Sequence[str]] = None,
    ) -> MergeResult:
        with _MERGE_LOCK:
            current = self.load()
            result = merge(current.repos, incoming)
            searched = list(dict.fromkeys([*current.keywords_searched, *(keywords or [])]))
            self.save(CatalogSnapshot.build(result.records, searched, source="file"))
        _LOGGER.info(
            "catalog | merged | added=%s | updated=%s | skipped=%s | total=%s",
            result.added,
            result.updated,
            result.skipped,
            len(result.records),
        )
        return result


__all__ = [
    "CatalogStore",
    "MergeResult",
    "merge",
]
