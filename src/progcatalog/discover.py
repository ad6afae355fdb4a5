"""CLI entrypoint for running a discovery pass."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Dict

from .config import get_database_settings, get_settings
from .db.phase import MirrorSyncPhase
from .ingestion.collector import EXIT_ERRORS
from .ingestion.phase import DiscoveryPhase
from .pipeline import PipelineContext, PipelineRunner
from .storage import build_storage_layout


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )


async def _run_async(*, sync: bool) -> Dict[str, Any]:
    settings = get_settings()
    context = PipelineContext(
        collector_settings=settings,
        database_settings=get_database_settings() if sync else None,
        storage_layout=build_storage_layout(settings),
    )
    phases = [DiscoveryPhase()]
    if sync:
        phases.append(MirrorSyncPhase())
    # a rate-limited run still saved its completed queries, so publish them
    runner = PipelineRunner(phases, context, continue_on_failure=True)
    results = await runner.run()
    discovery = next((result for result in results if result.name == "discovery"), None)
    if discovery is None:
        raise RuntimeError("Discovery phase did not run")
    report: Dict[str, Any] = {
        "discovery": discovery.details.get("log", {}),
        "exit_code": discovery.details.get("exit_code", EXIT_ERRORS),
    }
    mirror = next((result for result in results if result.name == "mirror-sync"), None)
    if mirror is not None:
        report["mirror"] = mirror.details
    return report


def run(*, sync: bool = False) -> Dict[str, Any]:
    """Execute one discovery run synchronously."""

    _configure_logging()
    return asyncio.run(_run_async(sync=sync))


def main(argv: list[str] | None = None) -> None:
    """Console script entry point; exits 0 (ok), 1 (query errors) or 2 (halted by rate limit)."""

    parser = argparse.ArgumentParser(description="Discover blockchain program repositories on GitHub")
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Republish the catalog to PostgreSQL after discovery",
    )
    args = parser.parse_args(argv)

    report = run(sync=args.sync)
    discovery = report["discovery"]
    logging.getLogger(__name__).info(
        "discovery | completed | new=%s | updated=%s | total=%s | errors=%s",
        discovery.get("newProgramsThisRun"),
        discovery.get("updatedPrograms"),
        discovery.get("totalPrograms"),
        len(discovery.get("errors", [])),
    )
    raise SystemExit(report["exit_code"])


if __name__ == "__main__":  # pragma: no cover
    main()
