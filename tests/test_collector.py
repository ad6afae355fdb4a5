from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

import progcatalog.ingestion.collector as collector_module
from progcatalog.catalog.store import CatalogStore
from progcatalog.config import CollectorSettings
from progcatalog.github.client import GitHubAPIError, GitHubRateLimitError
from progcatalog.ingestion.collector import (
    EXIT_ERRORS,
    EXIT_OK,
    EXIT_RATE_LIMITED,
    RepositoryCollector,
    exit_code_for,
    record_from_search_item,
)
from progcatalog.models import CatalogSnapshot, ProgramRecord
from progcatalog.storage import build_storage_layout


def _item(full_name: str, *, stars: int = 50, language: str = "Rust", **extra: Any) -> Dict[str, Any]:
    owner, name = full_name.split("/")
    item = {
        "full_name": full_name,
        "name": name,
        "owner": {"login": owner},
        "html_url": f"https://github.com/{full_name}",
        "description": "Anchor program",
        "stargazers_count": stars,
        "language": language,
        "updated_at": "2026-09-01T12:00:00Z",
        "topics": ["solana"],
        "default_branch": "main",
        "fork": False,
    }
    item.update(extra)
    return item


class _DummySearchClient:
    """Stands in for ``GitHubClient``; answers are keyed by query."""

    responses: Dict[str, Any] = {}
    calls: List[str] = []

    def __init__(self, settings: CollectorSettings) -> None:
        self._settings = settings

    async def __aenter__(self) -> "_DummySearchClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def search_repositories(self, query: str, **_kwargs: Any) -> List[Dict[str, Any]]:
        type(self).calls.append(query)
        answer = type(self).responses.get(query, [])
        if isinstance(answer, Exception):
            raise answer
        return list(answer)


@pytest.fixture()
def dummy_client(monkeypatch: pytest.MonkeyPatch):
    _DummySearchClient.responses = {}
    _DummySearchClient.calls = []
    monkeypatch.setattr(collector_module, "GitHubClient", _DummySearchClient)
    return _DummySearchClient


def _settings(tmp_path: Path, **overrides: Any) -> CollectorSettings:
    payload: Dict[str, Any] = {
        "storage_root": tmp_path,
        "search_queries": ["q0", "q1", "q2", "q3"],
        "queries_per_run": 2,
        "request_delay_seconds": 0,
        "min_stars": 5,
        "allowed_languages": ["Rust", "TypeScript"],
        "max_new_per_run": 10,
    }
    payload.update(overrides)
    return CollectorSettings(**payload)


def _collector(settings: CollectorSettings) -> RepositoryCollector:
    return RepositoryCollector(settings, build_storage_layout(settings))


def test_record_from_search_item_classifies_and_timestamps() -> None:
    record = record_from_search_item(_item("raydium-io/raydium-amm", description="AMM swap"))

    assert record.full_name == "raydium-io/raydium-amm"
    assert record.owner == "raydium-io"
    assert record.stars == 50
    assert record.category == "DEX"
    assert record.sub_category == "Raydium"
    assert record.discovered_at is not None
    assert record.updated is not None


@pytest.mark.asyncio
async def test_run_filters_and_persists_new_records(tmp_path: Path, dummy_client) -> None:
    dummy_client.responses = {
        "q0": [
            _item("acme/vault"),
            _item("acme/tiny", stars=1),
            _item("acme/python-tool", language="Python"),
            _item("acme/vault-fork"),
            _item("acme/copied", fork=True),
        ],
        "q1": [_item("acme/vault"), _item("beta/dex", language="TypeScript")],
    }
    settings = _settings(tmp_path)
    collector = _collector(settings)

    log = await collector.run()

    snapshot = collector.store.load()
    assert [record.full_name for record in snapshot.repos] == ["acme/vault", "beta/dex"]
    assert log.new_records == 2
    assert log.skipped_records == 4
    assert log.total_records == 2
    assert log.queries == ["q0", "q1"]
    assert exit_code_for(log) == EXIT_OK
    assert snapshot.keywords_searched == ["q0", "q1"]

    stored_log = json.loads(build_storage_layout(settings).discovery_log.read_text(encoding="utf-8"))
    assert stored_log["newProgramsThisRun"] == 2
    assert stored_log["haltedReason"] is None


@pytest.mark.asyncio
async def test_queries_rotate_across_runs(tmp_path: Path, dummy_client) -> None:
    collector = _collector(_settings(tmp_path, queries_per_run=3))

    await collector.run()
    await collector.run()

    assert dummy_client.calls == ["q0", "q1", "q2", "q3", "q0", "q1"]
    assert collector.read_checkpoint() == 2


@pytest.mark.asyncio
async def test_rate_limit_halts_run_and_keeps_completed_work(tmp_path: Path, dummy_client) -> None:
    dummy_client.responses = {
        "q0": [_item("acme/vault")],
        "q1": GitHubRateLimitError("quota exhausted", status=403),
    }
    collector = _collector(_settings(tmp_path, queries_per_run=3))

    log = await collector.run()

    assert log.halted_reason == "rate_limited"
    assert exit_code_for(log) == EXIT_RATE_LIMITED
    assert dummy_client.calls == ["q0", "q1"]
    assert [record.full_name for record in collector.store.load().repos] == ["acme/vault"]
    assert collector.read_checkpoint() == 1


@pytest.mark.asyncio
async def test_failed_query_is_logged_and_run_continues(tmp_path: Path, dummy_client) -> None:
    dummy_client.responses = {
        "q0": GitHubAPIError("validation failed", status=422),
        "q1": [_item("acme/vault")],
    }
    collector = _collector(_settings(tmp_path))

    log = await collector.run()

    assert log.new_records == 1
    assert len(log.errors) == 1
    assert exit_code_for(log) == EXIT_ERRORS


@pytest.mark.asyncio
async def test_new_records_are_capped_per_run(tmp_path: Path, dummy_client) -> None:
    dummy_client.responses = {"q0": [_item(f"acme/program-{index}") for index in range(5)]}
    collector = _collector(_settings(tmp_path, max_new_per_run=3, queries_per_run=1))

    log = await collector.run()

    assert log.new_records == 3
    assert [record.name for record in collector.store.load().repos] == ["program-0", "program-1", "program-2"]


@pytest.mark.asyncio
async def test_known_records_are_refreshed_not_duplicated(tmp_path: Path, dummy_client) -> None:
    settings = _settings(tmp_path, queries_per_run=1)
    store = CatalogStore(build_storage_layout(settings).catalog)
    store.save(
        CatalogSnapshot.build(
            [ProgramRecord.from_dict({"fullName": "Acme/Vault", "stars": 3, "discoveredAt": "2024-01-01T00:00:00Z"})]
        )
    )
    dummy_client.responses = {"q0": [_item("acme/vault", stars=99)]}

    log = await _collector(settings).run()

    snapshot = store.load()
    assert snapshot.total_repos == 1
    assert snapshot.repos[0].full_name == "Acme/Vault"
    assert snapshot.repos[0].stars == 99
    assert snapshot.repos[0].discovered_at.year == 2024
    assert log.new_records == 0
    assert log.updated_records == 1


@pytest.mark.asyncio
async def test_explicit_queries_leave_checkpoint_untouched(tmp_path: Path, dummy_client) -> None:
    collector = _collector(_settings(tmp_path))
    collector.write_checkpoint(3)

    await collector.run(queries=["adhoc"])

    assert dummy_client.calls == ["adhoc"]
    assert collector.read_checkpoint() == 3
