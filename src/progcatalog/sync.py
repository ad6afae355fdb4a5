"""CLI entrypoint that republishes the JSON catalog into PostgreSQL."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from psycopg import connect

from .catalog.store import CatalogStore
from .config import CatalogDatabaseSettings, get_database_settings, get_settings
from .db.migrations import apply_migrations
from .db.mirror import CatalogMirror
from .storage import build_storage_layout

_LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )


def _resolve_settings(dsn_override: Optional[str]) -> CatalogDatabaseSettings:
    settings = get_database_settings()
    if dsn_override:
        settings = settings.model_copy(update={"dsn": dsn_override, "enabled": True})
    if not settings.enabled or not settings.dsn:
        raise SystemExit("Catalog database is disabled. Set PROGCATALOG_DB_ENABLED=1 and PROGCATALOG_DB_DSN or pass --dsn.")
    return settings


def run(
    *,
    catalog_path: Optional[Path] = None,
    dsn: Optional[str] = None,
    migrate: bool = False,
) -> Dict[str, Any]:
    """Load the catalog file and make the relational mirror match it."""

    _configure_logging()
    settings = _resolve_settings(dsn)
    path = catalog_path or build_storage_layout(get_settings()).catalog
    snapshot = CatalogStore(path).load()
    _LOGGER.info("sync | loaded catalog | path=%s | records=%s", path, snapshot.total_repos)

    if migrate:
        with connect(str(settings.dsn), connect_timeout=settings.connect_timeout_seconds) as conn:
            applied = apply_migrations(conn, settings)
        for migration in applied:
            _LOGGER.info("sync | applied migration | version=%s | name=%s", migration.version, migration.name)

    mirror = CatalogMirror(settings)
    try:
        stats = mirror.sync(snapshot)
    finally:
        mirror.close()
    return {"catalog": str(path), "records": snapshot.total_repos, **stats}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Sync the JSON catalog into the PostgreSQL mirror")
    parser.add_argument("--catalog", type=Path, default=None, help="Catalog file (default: storage root programs.json)")
    parser.add_argument("--dsn", default=None, help="PostgreSQL connection string overriding PROGCATALOG_DB_DSN")
    parser.add_argument("--migrate", action="store_true", help="Apply pending schema migrations before syncing")
    args = parser.parse_args(argv)

    report = run(catalog_path=args.catalog, dsn=args.dsn, migrate=args.migrate)
    _LOGGER.info(
        "sync | completed | upserted=%s | pruned=%s | skipped=%s",
        report["upserted"],
        report["pruned"],
        report["skipped"],
    )


if __name__ == "__main__":  # pragma: no cover
    main()
