"""Interactive command-line interface for catalog maintenance and browsing."""

from __future__ import annotations

import asyncio
import json
import sys
import textwrap
import traceback
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from . import browse, check, discover, health_check, sync
from .catalog.query import (
    ProgramFilter,
    SORT_KEYS,
    catalog_diagnostics,
    filter_records,
    search,
    sort_records,
)
from .catalog.resolver import CatalogResolver
from .catalog.store import CatalogStore
from .classification import ALL_CATEGORIES, Category
from .config import get_settings
from .models import CatalogSnapshot, ProgramRecord
from .quality.checker import write_report
from .storage import build_storage_layout

console = Console()

_PROMPT_BANNER = textwrap.dedent(
    """
    ================================================================================
                            Program Catalog Toolkit
    ================================================================================

    CATALOG MAINTENANCE:
      1.  Run discovery (search GitHub for new programs)
      2.  Sync catalog to PostgreSQL
      3.  Run quality check

    BROWSE:
      4.  Search the catalog
      5.  View program source code
      6.  Show archive download link

    UTILITIES:
      7.  Show catalog status
      8.  Show system health
      9.  Show last run summaries

      0.  Exit
    ================================================================================
    """
)


def _prompt(message: str) -> str:
    try:
        return input(message)
    except EOFError:
        print("\n[EOF detected, exiting...]")
        sys.exit(0)
    except KeyboardInterrupt:
        print("\n[Interrupted, exiting...]")
        sys.exit(0)


def _prompt_int(prompt: str, *, default: int, minimum: Optional[int] = None) -> int:
    while True:
        raw = _prompt(f"{prompt} [{default}]: ").strip()
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError:
            print("Please enter a valid integer.")
            continue
        if minimum is not None and value < minimum:
            print(f"Value must be ≥ {minimum}.")
            continue
        return value


def _prompt_optional_int(prompt: str, *, default: Optional[int] = None, minimum: Optional[int] = None) -> Optional[int]:
    label = f"{prompt} [{'' if default is None else default}]: "
    while True:
        raw = _prompt(label).strip()
        if not raw:
            return default
        if raw.lower() in {"none", "null"}:
            return None
        try:
            value = int(raw)
        except ValueError:
            print("Please enter an integer, 'none', or press enter for default.")
            continue
        if minimum is not None and value < minimum:
            print(f"Value must be ≥ {minimum}.")
            continue
        return value


def _prompt_bool(prompt: str, *, default: bool = False) -> bool:
    suffix = "Y/n" if default else "y/N"
    while True:
        raw = _prompt(f"{prompt} [{suffix}]: ").strip().lower()
        if not raw:
            return default
        if raw in {"y", "yes", "1", "true"}:
            return True
        if raw in {"n", "no", "0", "false"}:
            return False
        print("Please respond with 'y' or 'n'.")


def _prompt_choice(prompt: str, choices: Dict[str, str], *, default: Optional[str] = None) -> Optional[str]:
    choice_display = ", ".join(f"{key}={label}" for key, label in choices.items())
    message = f"{prompt} ({choice_display})"
    if default is not None:
        message += f" [{default}]"
    message += ": "
    while True:
        raw = _prompt(message).strip().lower()
        if not raw:
            return default
        if raw in choices:
            return raw
        if raw in {"none", "null"}:
            return None
        print(f"Please choose one of: {', '.join(choices)} or press enter for default.")


def _prompt_full_name() -> Optional[tuple[str, str]]:
    raw = _prompt("Repository (owner/name): ").strip()
    owner, _, name = raw.partition("/")
    if not owner or not name:
        print("Expected owner/name. Returning to menu.\n")
        return None
    return owner, name


def _print_report(name: str, report: Dict[str, Any]) -> None:
    print(f"\n{name} report:")
    try:
        formatted = json.dumps(report, indent=2, sort_keys=True, default=str)
        print(formatted)
    except TypeError:
        print(report)
    print()


def _load_snapshot() -> CatalogSnapshot:
    """Prefer the local working catalog; fall back to the read path."""

    store = CatalogStore(build_storage_layout(get_settings()).catalog)
    if store.exists():
        return store.load()
    return CatalogResolver().load_catalog()


def _print_records(records: List[ProgramRecord], *, limit: int) -> None:
    table = Table(title=f"{len(records)} programs")
    table.add_column("Repository", style="bold")
    table.add_column("Stars", justify="right")
    table.add_column("Language")
    table.add_column("Category")
    table.add_column("Description")
    for record in records[:limit]:
        table.add_row(
            record.full_name,
            f"{record.stars:,}",
            record.language or "-",
            f"{record.category or '-'} / {record.sub_category or '-'}",
            (record.description or "")[:80],
        )
    if len(records) > limit:
        table.caption = f"showing {limit} of {len(records)}"
    console.print(table)


def _run_discovery_interactive() -> Dict[str, Any]:
    with_sync = _prompt_bool("Sync to PostgreSQL afterwards?", default=False)
    print("\n➡️  Running discovery...\n")
    report = discover.run(sync=with_sync)
    _print_report("Discovery", report)
    return report


def _run_sync_interactive() -> Dict[str, Any]:
    migrate = _prompt_bool("Apply pending migrations first?", default=False)
    print("\n➡️  Syncing catalog...\n")
    report = sync.run(migrate=migrate)
    _print_report("Sync", report)
    return report


def _run_quality_interactive() -> Dict[str, Any]:
    limit = _prompt_optional_int("Check only the first N programs", default=None, minimum=1)
    snapshot = _load_snapshot()
    print(f"\n➡️  Checking {limit or snapshot.total_repos} programs...\n")
    report = asyncio.run(check.run_quality_check(snapshot.repos, limit=limit))
    check.display_report(report)
    write_report(report, build_storage_layout(get_settings()).quality_report)
    return report.to_dict()


def _run_search_interactive() -> None:
    query = _prompt("Search text (enter for all): ").strip()
    categories = {str(index): value for index, value in enumerate([ALL_CATEGORIES, *(c.value for c in Category)])}
    category_key = _prompt_choice("Category", categories, default="0")
    sort_key = _prompt_choice("Sort by", {key: key for key in SORT_KEYS}, default="stars") or "stars"
    min_stars = _prompt_optional_int("Minimum stars", default=None, minimum=0)
    limit = _prompt_int("Rows to show", default=20, minimum=1)

    snapshot = _load_snapshot()
    criteria = ProgramFilter(
        category=categories.get(category_key or "0"),
        min_stars=min_stars,
    )
    records = sort_records(filter_records(search(snapshot.repos, query), criteria), sort_key)
    print()
    _print_records(records, limit=limit)
    print()


def _run_view_source_interactive() -> None:
    target = _prompt_full_name()
    if target is None:
        return
    owner, name = target
    print(f"\n➡️  Fetching source for {owner}/{name}...\n")
    content = asyncio.run(browse.fetch_code(owner, name, deadline_seconds=60.0))
    if not content.available:
        print(f"No code available ({content.status.value}). View it at https://github.com/{owner}/{name}\n")
        return
    browse.display_content(content)
    path = _prompt("Print file (path, enter to skip): ").strip()
    if path:
        browse.display_content(content, show=path)
    print()


def _run_archive_interactive() -> None:
    target = _prompt_full_name()
    if target is None:
        return
    link = asyncio.run(browse.fetch_archive_link(*target))
    if link is None:
        print("No downloadable archive found.\n")
    else:
        print(f"\n{link.url} ({link.branch}, {link.resolved_by})\n")


def _show_catalog_status() -> Dict[str, Any]:
    snapshot = _load_snapshot()
    diagnostics = catalog_diagnostics(snapshot)
    _print_report("Catalog status", diagnostics)
    return diagnostics


def _show_system_status() -> None:
    print("\n📊 Catalog Health Check")
    print("=" * 70)
    results, summary = health_check.run()
    health_check.display_results(results, summary)
    print()


def main() -> None:
    last_reports: Dict[str, Dict[str, Any]] = {}
    while True:
        print(_PROMPT_BANNER)
        choice = _prompt("Enter option: ").strip()
        if choice == "1":
            try:
                last_reports["discovery"] = _run_discovery_interactive()
            except Exception:
                print("Discovery failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "2":
            try:
                last_reports["sync"] = _run_sync_interactive()
            except (Exception, SystemExit):
                print("Sync failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "3":
            try:
                last_reports["quality"] = _run_quality_interactive()
            except Exception:
                print("Quality check failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "4":
            try:
                _run_search_interactive()
            except Exception:
                print("Search failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "5":
            try:
                _run_view_source_interactive()
            except Exception:
                print("Source view failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "6":
            try:
                _run_archive_interactive()
            except Exception:
                print("Archive lookup failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "7":
            try:
                last_reports["catalog"] = _show_catalog_status()
            except Exception:
                print("Status failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "8":
            try:
                _show_system_status()
            except Exception:
                print("Status check failed. Traceback:\n")
                traceback.print_exc()
        elif choice == "9":
            if not last_reports:
                print("\n📄 No runs recorded yet in this session.\n")
            else:
                for name, report in last_reports.items():
                    _print_report(name.capitalize(), report)
        elif choice in {"0", "q", "quit", "exit"}:
            print("👋 Bye!")
            sys.exit(0)
        else:
            print(f"Unknown option: '{choice}'. Please try again.\n")
            if not sys.stdin.isatty():
                print("[Non-interactive mode detected with invalid input, exiting...]")
                sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
