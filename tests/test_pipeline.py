from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import pytest

from progcatalog.config import CatalogDatabaseSettings, CollectorSettings
from progcatalog.db.phase import MirrorSyncPhase
from progcatalog.ingestion.phase import DiscoveryPhase
from progcatalog.pipeline import PhaseResult, PipelineContext, PipelineRunner
from progcatalog.storage import build_storage_layout


@dataclass
class _RecordingPhase:
    name: str
    succeeded: bool = True
    calls: List[str] = field(default_factory=list)

    async def run(self, context: PipelineContext) -> PhaseResult:
        self.calls.append(self.name)
        context.extra.setdefault("order", []).append(self.name)
        return PhaseResult(name=self.name, succeeded=self.succeeded)


@pytest.mark.asyncio
async def test_runner_stops_after_failed_phase() -> None:
    context = PipelineContext()
    runner = PipelineRunner([_RecordingPhase("one", succeeded=False), _RecordingPhase("two")], context)

    results = await runner.run()

    assert [result.name for result in results] == ["one"]
    assert runner.succeeded is False
    assert context.extra["order"] == ["one"]


@pytest.mark.asyncio
async def test_runner_can_continue_after_failure() -> None:
    context = PipelineContext()
    runner = PipelineRunner(
        [_RecordingPhase("one", succeeded=False), _RecordingPhase("two")],
        context,
        continue_on_failure=True,
    )

    await runner.run()

    assert runner.summary() == {
        "succeeded": False,
        "phases": [{"name": "one", "succeeded": False}, {"name": "two", "succeeded": True}],
    }


@pytest.mark.asyncio
async def test_discovery_phase_requires_settings() -> None:
    with pytest.raises(ValueError):
        await DiscoveryPhase().run(PipelineContext())


@pytest.mark.asyncio
async def test_mirror_sync_phase_skips_when_database_disabled(tmp_path: Path) -> None:
    settings = CollectorSettings(storage_root=tmp_path)
    context = PipelineContext(
        collector_settings=settings,
        database_settings=CatalogDatabaseSettings(enabled=False),
        storage_layout=build_storage_layout(settings),
    )

    result = await MirrorSyncPhase().run(context)

    assert result.succeeded
    assert result.details == {"skipped": True}
