"""
Quality Check CLI

Audits catalogued repositories against GitHub: existence, visibility, code
availability and archive download links. Writes ``quality-report.json``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .browser.cache import MemoryCodeCache
from .browser.fetcher import SourceBrowser
from .catalog.store import CatalogStore
from .config import get_browser_settings, get_settings
from .github.client import GitHubClient
from .models import ProgramRecord
from .quality.checker import IssueCategory, QualityChecker, QualityReport, Severity, write_report
from .storage import build_storage_layout

console = Console()

_SEVERITY_STYLES = {
    Severity.HIGH: "bold red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.NONE: "green",
}


async def run_quality_check(
    records: Sequence[ProgramRecord],
    *,
    limit: Optional[int] = None,
    delay_seconds: float = 1.0,
) -> QualityReport:
    settings = get_settings()
    browser_settings = get_browser_settings()
    async with GitHubClient(settings) as client:
        browser = SourceBrowser(client, MemoryCodeCache(browser_settings.cache_ttl_seconds), browser_settings)
        checker = QualityChecker(client, browser, browser_settings, request_delay_seconds=delay_seconds)
        return await checker.run(records, limit=limit)


def display_report(report: QualityReport) -> None:
    summary = report.summary()
    overview = Table(title="Quality Check Summary")
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Programs checked", str(report.checked))
    overview.add_row("Working correctly", f"{report.working} ({summary['workingPercentage']}%)")
    overview.add_row("With issues", f"{len(report.with_issues)} ({summary['issuePercentage']}%)")
    overview.add_row("High severity", str(summary["highSeverityIssues"]))
    overview.add_row("Medium severity", str(summary["mediumSeverityIssues"]))
    overview.add_row("Low severity", str(summary["lowSeverityIssues"]))
    console.print(overview)
    console.print()

    categories = Table(title="Issue Categories")
    categories.add_column("Category", style="bold")
    categories.add_column("Count", justify="right")
    for category in IssueCategory:
        categories.add_row(category.value, str(report.issue_categories.get(category, 0)))
    console.print(categories)
    console.print()

    if report.with_issues:
        issues = Table(title="Programs With Issues")
        issues.add_column("Repository", style="bold")
        issues.add_column("Severity", justify="center")
        issues.add_column("Issues")
        ranked = sorted(report.with_issues, key=lambda item: item.severity.rank, reverse=True)
        for item in ranked[:25]:
            style = _SEVERITY_STYLES[item.severity]
            issues.add_row(item.full_name, f"[{style}]{item.severity.value}[/{style}]", "\n".join(item.issues))
        if len(ranked) > 25:
            issues.caption = f"... and {len(ranked) - 25} more in the JSON report"
        console.print(issues)
        console.print()

    for recommendation in report.recommendations():
        console.print(
            f"[bold]{recommendation['category']}[/bold] ({recommendation['count']}, {recommendation['priority']}): "
            f"{recommendation['action']}"
        )
    if report.halted_reason:
        console.print(f"\n[bold red]Stopped early: {report.halted_reason}[/bold red]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def quality_cli(verbose: bool):
    """Catalog quality checks"""

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )


@quality_cli.command()
@click.option("--catalog", "catalog_path", type=click.Path(path_type=Path), default=None,
              help="Catalog file to audit (defaults to the storage root catalog).")
@click.option("--limit", "-n", type=int, default=None, help="Only check the first N programs.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None,
              help="Report destination (defaults to reports/quality-report.json).")
@click.option("--delay", type=float, default=1.0, show_default=True, help="Seconds to wait between programs.")
def catalog(catalog_path: Optional[Path], limit: Optional[int], output: Optional[Path], delay: float):
    """Audit every program in the catalog"""

    layout = build_storage_layout(get_settings())
    snapshot = CatalogStore(catalog_path or layout.catalog).load()
    console.print(Panel.fit(f"Checking {limit or snapshot.total_repos} of {snapshot.total_repos} programs",
                            style="bold blue"))

    report = asyncio.run(run_quality_check(snapshot.repos, limit=limit, delay_seconds=delay))
    display_report(report)
    destination = write_report(report, output or layout.quality_report)
    console.print(f"\nDetailed report saved to: [bold green]{destination}[/bold green]")
    if report.halted_reason:
        raise SystemExit(2)


@quality_cli.command()
@click.argument("full_name")
def repo(full_name: str):
    """Audit a single OWNER/NAME repository"""

    record = ProgramRecord.from_dict({"fullName": full_name})
    if record.identity is None:
        raise click.BadParameter("expected OWNER/NAME", param_hint="FULL_NAME")
    report = asyncio.run(run_quality_check([record], delay_seconds=0.0))
    display_report(report)
    if report.halted_reason:
        raise SystemExit(2)


def main() -> None:
    quality_cli()


if __name__ == "__main__":  # pragma: no cover
    main()
