"""Filesystem layout for the catalog, run logs and caches."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .config import CollectorSettings

CATALOG_FILENAME = "programs.json"
DISCOVERY_LOG_FILENAME = "discovery-log.json"
CHECKPOINT_FILENAME = "discovery-checkpoint.json"
QUALITY_REPORT_FILENAME = "quality-report.json"


@dataclass(frozen=True, slots=True)
class StorageLayout:
    """Represents the directory layout for catalog artifacts."""

    root: Path
    reports: Path
    code_cache: Path
    temp: Path

    @property
    def catalog(self) -> Path:
        return self.root / CATALOG_FILENAME

    @property
    def discovery_log(self) -> Path:
        return self.root / DISCOVERY_LOG_FILENAME

    @property
    def checkpoint(self) -> Path:
        return self.root / CHECKPOINT_FILENAME

    @property
    def quality_report(self) -> Path:
        return self.reports / QUALITY_REPORT_FILENAME

    def as_iterable(self) -> Iterable[Path]:
        return (self.root, self.reports, self.code_cache, self.temp)


def build_storage_layout(settings: CollectorSettings) -> StorageLayout:
    """Create the directory layout based on provided settings."""

    directories = settings.storage_directories()
    return StorageLayout(
        root=directories["root"],
        reports=directories["reports"],
        code_cache=directories["code_cache"],
        temp=directories["temp"],
    )


def ensure_storage_layout(layout: StorageLayout) -> None:
    """Ensure all directories in the layout exist on disk."""

    for path in layout.as_iterable():
        path.mkdir(parents=True, exist_ok=True)


__all__ = [
    "StorageLayout",
    "build_storage_layout",
    "ensure_storage_layout",
]
