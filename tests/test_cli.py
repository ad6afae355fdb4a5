from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict

import pytest
from click.testing import CliRunner

from progcatalog import browse, check, cli, config
from progcatalog.browser.fetcher import CodeStatus, RepoContent, RepoFile
from progcatalog.catalog.store import CatalogStore
from progcatalog.github.client import GitHubConnectivityError
from progcatalog.models import CatalogSnapshot, ProgramRecord, utcnow
from progcatalog.quality.checker import QualityReport
from progcatalog.storage import build_storage_layout


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PROGCATALOG_STORAGE_ROOT", str(tmp_path))
    config.get_settings.cache_clear()
    yield tmp_path
    config.get_settings.cache_clear()


def _seed_catalog(records) -> None:
    layout = build_storage_layout(config.get_settings())
    CatalogStore(layout.catalog).save(CatalogSnapshot.build(records, ["seed"]))


def test_run_discovery_interactive(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: Dict[str, Any] = {}

    def fake_run(*, sync: bool) -> Dict[str, Any]:
        captured["sync"] = sync
        return {"exit_code": 0}

    monkeypatch.setattr(cli, "_prompt_bool", lambda *args, **kwargs: True)
    monkeypatch.setattr(cli.discover, "run", fake_run)

    report = cli._run_discovery_interactive()

    assert report == {"exit_code": 0}
    assert captured == {"sync": True}


def test_run_sync_interactive(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: Dict[str, Any] = {}

    def fake_run(*, migrate: bool) -> Dict[str, Any]:
        captured["migrate"] = migrate
        return {"upserted": 3}

    monkeypatch.setattr(cli, "_prompt_bool", lambda *args, **kwargs: False)
    monkeypatch.setattr(cli.sync, "run", fake_run)

    assert cli._run_sync_interactive() == {"upserted": 3}
    assert captured == {"migrate": False}


def test_search_interactive_prints_matching_records(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _seed_catalog(
        [
            ProgramRecord.from_dict({"fullName": "jup-ag/jupiter-core", "stars": 40, "category": "DEX"}),
            ProgramRecord.from_dict({"fullName": "acme/unrelated", "stars": 90}),
        ]
    )
    answers = iter(["jupiter"])
    monkeypatch.setattr(cli, "_prompt", lambda *args, **kwargs: next(answers))
    monkeypatch.setattr(cli, "_prompt_choice", lambda prompt, choices, default=None: default)
    monkeypatch.setattr(cli, "_prompt_optional_int", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "_prompt_int", lambda *args, **kwargs: 10)

    cli._run_search_interactive()

    output = capsys.readouterr().out
    assert "jup-ag/jupiter-core" in output
    assert "acme/unrelated" not in output


def test_catalog_status_reads_working_catalog() -> None:
    _seed_catalog([ProgramRecord.from_dict({"fullName": "a/x"}), ProgramRecord.from_dict({"fullName": "A/X"})])

    diagnostics = cli._show_catalog_status()

    assert diagnostics["source"] == "file"
    assert diagnostics["duplicates"] == ["a/x"]


def test_browse_code_reports_missing_code(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_fetch(owner: str, repo: str, *, deadline_seconds=None) -> RepoContent:
        return RepoContent(owner=owner, repo=repo, status=CodeStatus.NO_FILES_FOUND)

    monkeypatch.setattr(browse, "fetch_code", fake_fetch)

    result = CliRunner().invoke(browse.browse_cli, ["code", "acme/docs-only"])

    assert result.exit_code == 0
    assert "no_files_found" in result.output
    assert "https://github.com/acme/docs-only" in result.output


def test_browse_code_lists_files(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_fetch(owner: str, repo: str, *, deadline_seconds=None) -> RepoContent:
        files = [RepoFile(name="lib.rs", path="src/lib.rs", content="fn main() {}", language="rust")]
        return RepoContent(owner=owner, repo=repo, files=files)

    monkeypatch.setattr(browse, "fetch_code", fake_fetch)

    result = CliRunner().invoke(browse.browse_cli, ["code", "acme/vault"])

    assert result.exit_code == 0
    assert "src/lib.rs" in result.output


@pytest.mark.parametrize("error", [GitHubConnectivityError("GitHub unreachable"), asyncio.TimeoutError()])
def test_browse_code_reports_fetch_failure(monkeypatch: pytest.MonkeyPatch, error: Exception) -> None:
    async def fake_fetch(owner: str, repo: str, *, deadline_seconds=None) -> RepoContent:
        raise error

    monkeypatch.setattr(browse, "fetch_code", fake_fetch)

    result = CliRunner().invoke(browse.browse_cli, ["code", "acme/vault"])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "acme/vault" in result.output
    assert "Retry" in result.output


def test_browse_rejects_malformed_name() -> None:
    result = CliRunner().invoke(browse.browse_cli, ["archive", "not-a-repo"])

    assert result.exit_code != 0
    assert "OWNER/NAME" in result.output


def test_quality_catalog_command_writes_report(monkeypatch: pytest.MonkeyPatch, isolated_storage: Path) -> None:
    _seed_catalog([ProgramRecord.from_dict({"fullName": "a/x"})])
    seen: Dict[str, Any] = {}

    async def fake_check(records, *, limit=None, delay_seconds=1.0) -> QualityReport:
        seen["records"] = [record.full_name for record in records]
        seen["limit"] = limit
        report = QualityReport(generated_at=utcnow())
        report.checked = len(records)
        report.working = len(records)
        return report

    monkeypatch.setattr(check, "run_quality_check", fake_check)

    result = CliRunner().invoke(check.quality_cli, ["catalog", "--limit", "5", "--delay", "0"])

    assert result.exit_code == 0, result.output
    assert seen == {"records": ["a/x"], "limit": 5}
    assert (isolated_storage / "reports" / "quality-report.json").exists()


def test_quality_repo_command_exits_2_when_rate_limited(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_check(records, *, limit=None, delay_seconds=1.0) -> QualityReport:
        report = QualityReport(generated_at=utcnow())
        report.halted_reason = "rate_limited"
        return report

    monkeypatch.setattr(check, "run_quality_check", fake_check)

    result = CliRunner().invoke(check.quality_cli, ["repo", "acme/vault"])

    assert result.exit_code == 2
    assert "rate_limited" in result.output
