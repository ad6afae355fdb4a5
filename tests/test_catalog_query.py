from __future__ import annotations

from datetime import datetime, timezone
from typing import List

import pytest

from progcatalog.catalog.query import (
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
from progcatalog.classification import ALL_CATEGORIES, Category
from progcatalog.models import CatalogSnapshot, ProgramRecord


def _record(name: str, *, owner: str = "acme", **overrides) -> ProgramRecord:
    payload = {"full_name": f"{owner}/{name}", "owner": owner, "name": name}
    payload.update(overrides)
    return ProgramRecord(**payload)


@pytest.fixture()
def catalog() -> List[ProgramRecord]:
    return [
        _record("jupiter-core", stars=40, language="Rust", description="Swap aggregator", category="DEX",
                sub_category="Jupiter", updated=datetime(2026, 3, 1, tzinfo=timezone.utc)),
        _record("nft-mint", stars=12, language="TypeScript", description="Mint collections", topics=["metaplex"]),
        _record("lend-v2", stars=40, language="Rust", description="Borrow and lend",
                updated=datetime(2026, 5, 1, tzinfo=timezone.utc)),
        _record("Alpha", stars=3, language="rust"),
        _record("beta", stars=0, language=None, description="Validator tooling"),
    ]


def test_search_finds_single_matching_record() -> None:
    records = [_record("jupiter-core")] + [_record(f"unrelated-{index}", description="Lorem ipsum") for index in range(9)]

    result = search(records, "jupiter")

    assert [record.name for record in result] == ["jupiter-core"]


def test_search_matches_description_and_topics_case_insensitively(catalog) -> None:
    assert [record.name for record in search(catalog, "AGGREGATOR")] == ["jupiter-core"]
    assert [record.name for record in search(catalog, "Metaplex")] == ["nft-mint"]


@pytest.mark.parametrize("query", ["", "   ", None])
def test_empty_search_returns_everything(catalog, query) -> None:
    assert search(catalog, query) == catalog


def test_empty_filter_returns_everything(catalog) -> None:
    assert filter_records(catalog, ProgramFilter()) == catalog
    assert filter_records(catalog, ProgramFilter(category=ALL_CATEGORIES)) == catalog
    assert filter_records(catalog) == catalog


def test_filter_by_category_classifies_uncategorised_records(catalog) -> None:
    result = filter_records(catalog, ProgramFilter(category=Category.LENDING.value))

    assert [record.name for record in result] == ["lend-v2"]


def test_filter_conjunction_of_language_and_stars(catalog) -> None:
    result = filter_records(catalog, ProgramFilter(language="RUST", min_stars=10, max_stars=40))

    assert [record.name for record in result] == ["jupiter-core", "lend-v2"]


def test_filter_by_sub_category(catalog) -> None:
    result = filter_records(catalog, ProgramFilter(sub_category="Jupiter"))

    assert [record.name for record in result] == ["jupiter-core"]


def test_star_sort_is_descending_and_stable(catalog) -> None:
    result = sort_records(catalog, "stars")

    assert [record.stars for record in result] == [40, 40, 12, 3, 0]
    assert [record.name for record in result[:2]] == ["jupiter-core", "lend-v2"]


def test_sort_does_not_mutate_input(catalog) -> None:
    before = list(catalog)

    sort_records(catalog, "name")

    assert catalog == before


def test_updated_sort_places_undated_records_last(catalog) -> None:
    result = sort_records(catalog, "updated")

    assert [record.name for record in result] == ["lend-v2", "jupiter-core", "nft-mint", "Alpha", "beta"]


def test_name_sort_is_case_insensitive(catalog) -> None:
    result = sort_records(catalog, "name")

    assert [record.name for record in result] == ["Alpha", "beta", "jupiter-core", "lend-v2", "nft-mint"]


def test_sort_handles_empty_input() -> None:
    assert sort_records([], "stars") == []


def test_unknown_sort_key_is_rejected(catalog) -> None:
    with pytest.raises(ValueError):
        sort_records(catalog, "forks")


def test_category_counts_list_all_first_with_zero_buckets(catalog) -> None:
    counts = category_counts(catalog)

    assert next(iter(counts)) == ALL_CATEGORIES
    assert counts[ALL_CATEGORIES] == len(catalog)
    assert counts[Category.GOVERNANCE.value] == 0
    assert sum(value for key, value in counts.items() if key != ALL_CATEGORIES) == len(catalog)


def test_featured_programs_are_top_by_stars(catalog) -> None:
    assert [record.name for record in featured_programs(catalog, limit=3)] == ["jupiter-core", "lend-v2", "nft-mint"]
    assert featured_programs(catalog, limit=0) == []


def test_find_program_and_languages(catalog) -> None:
    assert find_program(catalog, "ACME/lend-v2").name == "lend-v2"
    assert find_program(catalog, "acme/missing") is None
    assert list_languages(catalog) == ["Rust", "TypeScript", "rust"]


def test_find_program_matches_on_owner_and_name() -> None:
    stale = ProgramRecord(full_name="old-owner/vault", owner="acme", name="vault")

    assert find_program([stale], "Acme/Vault") is stale
    assert find_program([stale], "old-owner/vault") is None
    assert find_program([stale], "not-a-name") is None


def test_catalog_diagnostics_reports_duplicates_and_orphans() -> None:
    snapshot = CatalogSnapshot.build(
        [
            _record("x", stars=1),
            _record("X", stars=2),
            ProgramRecord(full_name="broken", owner="", name=""),
        ],
        source="file",
    )

    diagnostics = catalog_diagnostics(snapshot)

    assert diagnostics["total"] == 3
    assert diagnostics["unique"] == 1
    assert diagnostics["duplicates"] == ["acme/x"]
    assert diagnostics["without_identity"] == 1
    assert diagnostics["source"] == "file"
