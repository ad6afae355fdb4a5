"""CLI helper reporting the health of catalog components."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .health import HealthCheckResult, HealthCheckRunner, HealthStatus, default_checks

console = Console()

_STATUS_STYLES = {
    HealthStatus.HEALTHY: "green",
    HealthStatus.WARNING: "yellow",
    HealthStatus.ERROR: "bold red",
    HealthStatus.UNKNOWN: "dim",
}


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )


async def _run_async(runner: HealthCheckRunner) -> Tuple[List[HealthCheckResult], Dict[str, Any]]:
    results = await runner.run_all()
    return results, runner.summarize(results)


def run(
    *,
    include_network: bool = True,
    runner: Optional[HealthCheckRunner] = None,
) -> Tuple[List[HealthCheckResult], Dict[str, Any]]:
    _configure_logging()
    runner = runner or HealthCheckRunner(default_checks(include_network=include_network))
    return asyncio.run(_run_async(runner))


def display_results(results: List[HealthCheckResult], summary: Dict[str, Any]) -> None:
    table = Table(title="Catalog Health")
    table.add_column("Check", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Message")
    table.add_column("ms", justify="right")
    for result in results:
        style = _STATUS_STYLES[result.status]
        table.add_row(
            result.name,
            f"[{style}]{result.status.value}[/{style}]",
            result.message,
            f"{result.duration_ms:.0f}",
        )
    console.print(table)
    overall = summary["overall_status"]
    console.print(
        f"Overall: [{_STATUS_STYLES[overall]}]{overall.value.upper()}[/{_STATUS_STYLES[overall]}] "
        f"({summary['healthy']} healthy, {summary['warning']} warning, {summary['error']} error)"
    )


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Catalog health check")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip checks that call the GitHub API",
    )
    args = parser.parse_args(argv)

    results, summary = run(include_network=not args.offline)
    display_results(results, summary)
    if summary["overall_status"] is HealthStatus.ERROR:
        raise SystemExit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
