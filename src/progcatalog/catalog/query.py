"""Search, filter and sort operations over catalog records."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..classification import ALL_CATEGORIES, Category, Classifier, classify_record, effective_category
from ..models import CatalogSnapshot, ProgramRecord, record_identity

SORT_KEYS = ("stars", "updated", "name")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class ProgramFilter:
    """Conjunction of optional constraints; unset fields match everything."""

    category: Optional[str] = None
    sub_category: Optional[str] = None
    language: Optional[str] = None
    min_stars: Optional[int] = None
    max_stars: Optional[int] = None

    def is_empty(self) -> bool:
        return (
            (self.category is None or self.category == ALL_CATEGORIES)
            and self.sub_category is None
            and self.language is None
            and self.min_stars is None
            and self.max_stars is None
        )


def search(records: Sequence[ProgramRecord], query: Optional[str]) -> List[ProgramRecord]:
    """Case-insensitive substring search over name, description and topics."""

    needle = (query or "").strip().lower()
    if not needle:
        return list(records)
    matches: List[ProgramRecord] = []
    for record in records:
        if needle in record.name.lower():
            matches.append(record)
        elif record.description and needle in record.description.lower():
            matches.append(record)
        elif any(needle in topic.lower() for topic in record.topics):
            matches.append(record)
    return matches


def filter_records(
    records: Sequence[ProgramRecord],
    criteria: Optional[ProgramFilter] = None,
    *,
    classifier: Optional[Classifier] = None,
) -> List[ProgramRecord]:
    if criteria is None or criteria.is_empty():
        return list(records)
    language = criteria.language.lower() if criteria.language else None
    results: List[ProgramRecord] = []
    for record in records:
        if criteria.category and criteria.category != ALL_CATEGORIES:
            if effective_category(record, classifier) != criteria.category:
                continue
        if criteria.sub_category:
            sub_category = record.sub_category or classify_record(record, classifier).sub_category
            if sub_category != criteria.sub_category:
                continue
        if language is not None and (record.language or "").lower() != language:
            continue
        if criteria.min_stars is not None and record.stars < criteria.min_stars:
            continue
        if criteria.max_stars is not None and record.stars > criteria.max_stars:
            continue
        results.append(record)
    return results


def sort_records(records: Sequence[ProgramRecord], key: str = "stars") -> List[ProgramRecord]:
    """Return a new list ordered by ``key``; equal keys keep their input order."""

    if key == "stars":
        return sorted(records, key=lambda record: record.stars, reverse=True)
    if key == "updated":
        dated = [record for record in records if record.updated is not None]
        undated = [record for record in records if record.updated is None]
        return sorted(dated, key=lambda record: record.updated or _EPOCH, reverse=True) + undated
    if key == "name":
        return sorted(records, key=lambda record: (record.name.casefold(), record.name))
    raise ValueError(f"Unknown sort key {key!r}; expected one of {', '.join(SORT_KEYS)}")


def find_program(records: Iterable[ProgramRecord], full_name: str) -> Optional[ProgramRecord]:
    owner, _, name = (full_name or "").strip().partition("/")
    wanted = record_identity(owner, name)
    if wanted is None:
        return None
    for record in records:
        if record.identity == wanted:
            return record
    return None


def list_languages(records: Iterable[ProgramRecord]) -> List[str]:
    return sorted({record.language for record in records if record.language})


def category_counts(
    records: Sequence[ProgramRecord],
    classifier: Optional[Classifier] = None,
) -> Dict[str, int]:
    """Count records per category, with ``All`` first and zero-count categories included."""

    counts: Dict[str, int] = {ALL_CATEGORIES: len(records)}
    counts.update({category.value: 0 for category in Category})
    for record in records:
        category = effective_category(record, classifier)
        counts[category] = counts.get(category, 0) + 1
    return counts


def featured_programs(records: Sequence[ProgramRecord], limit: int = 6) -> List[ProgramRecord]:
    if limit <= 0:
        return []
    return sort_records(records, "stars")[:limit]


def catalog_diagnostics(snapshot: CatalogSnapshot, classifier: Optional[Classifier] = None) -> Dict[str, Any]:
    """Summarise a snapshot: duplicates, unidentifiable records and category breakdowns."""

    identities = Counter(record.identity for record in snapshot.repos if record.identity)
    duplicates = sorted(identity for identity, count in identities.items() if count > 1)
    categories: Counter[str] = Counter()
    sub_categories: Counter[str] = Counter()
    for record in snapshot.repos:
        classification = classify_record(record, classifier)
        categories[record.category or classification.category] += 1
        sub_categories[record.sub_category or classification.sub_category] += 1
    return {
        "source": snapshot.source,
        "total": snapshot.total_repos,
        "unique": len(identities),
        "duplicates": duplicates,
        "without_identity": sum(1 for record in snapshot.repos if not record.identity),
        "categories": dict(categories.most_common()),
        "sub_categories": dict(sub_categories.most_common()),
        "languages": list_languages(snapshot.repos),
    }


__all__ = [
    "ProgramFilter",
    "SORT_KEYS",
    "catalog_diagnostics",
    "category_counts",
    "featured_programs",
    "filter_records",
    "find_program",
    "list_languages",
    "search",
    "sort_records",
]
