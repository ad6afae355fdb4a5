"""Command-line access to the source browser and archive links."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .browser.archive import ArchiveLink, repository_url, resolve_archive
from .browser.cache import FileCodeCache
from .browser.fetcher import RepoContent, SourceBrowser
from .config import get_browser_settings, get_settings
from .github.client import GitHubAPIError, GitHubClient
from .storage import build_storage_layout

console = Console()


def _split(full_name: str) -> tuple[str, str]:
    owner, _, name = full_name.strip().partition("/")
    if not owner or not name or "/" in name:
        raise click.BadParameter("expected OWNER/NAME", param_hint="FULL_NAME")
    return owner, name


async def fetch_code(owner: str, repo: str, *, deadline_seconds: Optional[float] = None) -> RepoContent:
    settings = get_settings()
    browser_settings = get_browser_settings()
    cache = FileCodeCache(build_storage_layout(settings).code_cache, browser_settings.cache_ttl_seconds)
    async with GitHubClient(settings) as client:
        browser = SourceBrowser(client, cache, browser_settings)
        return await browser.fetch_repo_code(owner, repo, deadline_seconds=deadline_seconds)


async def fetch_archive_link(owner: str, repo: str) -> Optional[ArchiveLink]:
    async with GitHubClient(get_settings()) as client:
        return await resolve_archive(client, owner, repo, settings=get_browser_settings())


def _report_fetch_failure(full_name: str, exc: BaseException) -> None:
    reason = "timed out" if isinstance(exc, asyncio.TimeoutError) else f"{type(exc).__name__}: {exc}"
    console.print(Panel.fit(
        f"Could not fetch {full_name} ({reason}). Retry the command once GitHub is reachable again.",
        style="bold red",
    ))


def display_content(content: RepoContent, *, show: Optional[str] = None) -> None:
    table = Table(title=f"{content.owner}/{content.repo} ({content.status.value})")
    table.add_column("#", justify="right")
    table.add_column("Path", style="bold")
    table.add_column("Language")
    table.add_column("Bytes", justify="right")
    for index, item in enumerate(content.files, start=1):
        table.add_row(str(index), item.path, item.language, f"{len(item.content.encode('utf-8')):,}")
    console.print(table)

    if show:
        match = next((item for item in content.files if item.path == show or item.name == show), None)
        if match is None:
            console.print(f"[yellow]No fetched file matches {show!r}[/yellow]")
        else:
            console.print(Syntax(match.content, match.language, line_numbers=True))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def browse_cli(verbose: bool):
    """Browse catalogued repositories"""

    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )


@browse_cli.command()
@click.argument("full_name")
@click.option("--show", default=None, help="Print the contents of this file path.")
@click.option("--deadline", type=float, default=None, help="Give up after this many seconds.")
def code(full_name: str, show: Optional[str], deadline: Optional[float]):
    """List (and optionally print) the main source files of OWNER/NAME"""

    owner, name = _split(full_name)
    try:
        content = asyncio.run(fetch_code(owner, name, deadline_seconds=deadline))
    except (GitHubAPIError, asyncio.TimeoutError) as exc:
        _report_fetch_failure(f"{owner}/{name}", exc)
        raise SystemExit(1)
    if not content.available:
        console.print(Panel.fit(
            f"No code available ({content.status.value}). View it on GitHub: {repository_url(owner, name)}",
            style="yellow",
        ))
        return
    display_content(content, show=show)


@browse_cli.command()
@click.argument("full_name")
def archive(full_name: str):
    """Print a working zip download link for OWNER/NAME"""

    owner, name = _split(full_name)
    try:
        link = asyncio.run(fetch_archive_link(owner, name))
    except GitHubAPIError as exc:
        _report_fetch_failure(f"{owner}/{name}", exc)
        raise SystemExit(1)
    if link is None:
        console.print(f"[bold red]No downloadable archive found for {owner}/{name}[/bold red]")
        raise SystemExit(1)
    console.print(f"{link.url}  [dim]({link.branch}, {link.resolved_by})[/dim]")


def main() -> None:
    browse_cli()


if __name__ == "__main__":  # pragma: no cover
    main()
