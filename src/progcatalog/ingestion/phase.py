"""Pipeline phase for the discovery stage."""

from __future__ import annotations

from dataclasses import dataclass

from ..pipeline.base import PhaseResult, PipelineContext, PipelinePhase
from .collector import RepositoryCollector, exit_code_for


@dataclass(slots=True)
class DiscoveryPhase(PipelinePhase):
    """Execute one discovery run as part of a multi-phase pipeline."""

    name: str = "discovery"

    async def run(self, context: PipelineContext) -> PhaseResult:
        if not context.collector_settings:
            raise ValueError("collector_settings missing from pipeline context")
        if not context.storage_layout:
            raise ValueError("storage_layout missing from pipeline context")
        collector = RepositoryCollector(context.collector_settings, context.storage_layout)
        log = await collector.run()
        report = log.to_dict()
        context.extra.setdefault("discovery", {})["log"] = report
        return PhaseResult(
            name=self.name,
            succeeded=log.halted_reason is None,
            details={"log": report, "exit_code": exit_code_for(log)},
        )


__all__ = ["DiscoveryPhase"]
