"""Common abstractions for composing catalog maintenance phases."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..config import CatalogDatabaseSettings, CollectorSettings
from ..storage import StorageLayout

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineContext:
    """Runtime context shared across pipeline phases."""

    collector_settings: Optional[CollectorSettings] = None
    database_settings: Optional[CatalogDatabaseSettings] = None
    storage_layout: Optional[StorageLayout] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PhaseResult:
    """Represents the outcome of a pipeline phase."""

    name: str
    succeeded: bool
    details: Dict[str, Any] = field(default_factory=dict)


class PipelinePhase(Protocol):
    """Interface that all pipeline phases must implement."""

    name: str

    async def run(self, context: PipelineContext) -> PhaseResult:
        ...


class PipelineRunner:
    """Execute a sequence of pipeline phases with shared context.

    A phase reporting failure stops the run unless ``continue_on_failure`` is
    set, in which case later phases still execute (useful when a sync should
    publish whatever a halted discovery run managed to save).
    """

    def __init__(
        self,
        phases: Sequence[PipelinePhase],
        context: PipelineContext,
        *,
        continue_on_failure: bool = False,
    ):
        self._phases = list(phases)
        self._context = context
        self._continue_on_failure = continue_on_failure
        self._results: List[PhaseResult] = []

    @property
    def results(self) -> List[PhaseResult]:
        return list(self._results)

    @property
    def succeeded(self) -> bool:
        return bool(self._results) and all(result.succeeded for result in self._results)

    async def run(self) -> List[PhaseResult]:
        self._results.clear()
        for phase in self._phases:
            _LOGGER.info("pipeline | phase started | phase=%s", phase.name)
            result = await phase.run(self._context)
            self._results.append(result)
            _LOGGER.info("pipeline | phase finished | phase=%s | succeeded=%s", phase.name, result.succeeded)
            if not result.succeeded and not self._continue_on_failure:
                break
        return list(self._results)

    def summary(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "phases": [{"name": result.name, "succeeded": result.succeeded} for result in self._results],
        }


__all__ = [
    "PhaseResult",
    "PipelineContext",
    "PipelinePhase",
    "PipelineRunner",
]
