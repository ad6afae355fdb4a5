"""Pipeline phase that republishes the JSON catalog into PostgreSQL."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..catalog.store import CatalogStore
from ..pipeline.base import PhaseResult, PipelineContext, PipelinePhase
from .mirror import CatalogMirror

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class MirrorSyncPhase(PipelinePhase):
    """Rebuild the relational mirror from the catalog file."""

    name: str = "mirror-sync"

    async def run(self, context: PipelineContext) -> PhaseResult:
        if not context.storage_layout:
            raise ValueError("storage_layout missing from pipeline context")
        settings = context.database_settings
        if settings is None or not settings.enabled or not settings.dsn:
            _LOGGER.info("db | mirror sync skipped | reason=database disabled")
            return PhaseResult(name=self.name, succeeded=True, details={"skipped": True})

        snapshot = CatalogStore(context.storage_layout.catalog).load()
        mirror = CatalogMirror(settings)
        try:
            stats = await asyncio.to_thread(mirror.sync, snapshot)
        finally:
            mirror.close()
        context.extra.setdefault("mirror", {})["stats"] = stats
        return PhaseResult(name=self.name, succeeded=True, details=stats)


__all__ = ["MirrorSyncPhase"]
