"""Catalog persistence, read path and query operations."""

from .query import (
    SORT_KEYS,
    ProgramFilter,
    catalog_diagnostics,
    category_counts,
    featured_programs,
    filter_records,
    find_program,
    list_languages,
    search,
    sort_records,
)
from .resolver import CatalogResolver, RecordReader, SnapshotCache, load_bundled_snapshot, load_catalog
from .store import CatalogStore, MergeResult, merge

__all__ = [
    "CatalogResolver",
    "CatalogStore",
    "MergeResult",
    "ProgramFilter",
    "RecordReader",
    "SORT_KEYS",
    "SnapshotCache",
    "catalog_diagnostics",
    "category_counts",
    "featured_programs",
    "filter_records",
    "find_program",
    "list_languages",
    "load_bundled_snapshot",
    "load_catalog",
    "merge",
    "search",
    "sort_records",
]
