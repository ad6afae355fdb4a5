"""Bring the catalog mirror schema up to the version the reader expects."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, Sequence

from psycopg import Connection, connect

from ..config import CatalogDatabaseSettings, get_database_settings
from .migrations import EXPECTED_SCHEMA_VERSION, MIGRATIONS, apply_migrations, current_schema_version

_LOGGER = logging.getLogger(__name__)


def _resolve_settings(dsn_override: str | None) -> CatalogDatabaseSettings:
    settings = get_database_settings()
    if dsn_override:
        settings = settings.model_copy(update={"dsn": dsn_override, "enabled": True})
    if not settings.enabled:
        raise SystemExit("Catalog mirror is disabled. Set PROGCATALOG_DB_ENABLED=1 or pass --dsn.")
    if not settings.dsn:
        raise SystemExit("No PostgreSQL connection string provided. Set PROGCATALOG_DB_DSN or pass --dsn.")
    return settings


def _check_target(target_version: int | None) -> None:
    known = [migration.version for migration in MIGRATIONS]
    if target_version is not None and target_version not in known:
        raise SystemExit(f"Unknown schema version {target_version}; known versions: {known}")


def schema_status(conn: Connection, settings: CatalogDatabaseSettings) -> Dict[str, Any]:
    """Compare the applied schema version with the one the catalog reader requires.

    Read-only, so it is safe to call against a database that was never
    migrated.
    """

    current = current_schema_version(conn, settings)
    pending = [migration for migration in MIGRATIONS if current is None or migration.version > current]
    return {
        "schema": settings.schema_name,
        "current": current,
        "expected": EXPECTED_SCHEMA_VERSION,
        "pending": [(migration.version, migration.name) for migration in pending],
        "up_to_date": current == EXPECTED_SCHEMA_VERSION,
    }


def run(
    conn: Connection,
    settings: CatalogDatabaseSettings,
    *,
    target_version: int | None = None,
    dry_run: bool = False,
) -> int:
    _check_target(target_version)
    status = schema_status(conn, settings)
    _LOGGER.info(
        "db | schema | name=%s | current=%s | expected=%s | pending=%s",
        status["schema"],
        status["current"],
        status["expected"],
        len(status["pending"]),
    )

    if dry_run:
        for version, name in status["pending"]:
            _LOGGER.info("db | migrations | pending | version=%s | name=%s", version, name)
        return 0 if status["up_to_date"] else 1

    applied = apply_migrations(conn, settings, target_version=target_version)
    for migration in applied:
        _LOGGER.info("db | migrations | applied | version=%s | name=%s", migration.version, migration.name)

    wanted = target_version or EXPECTED_SCHEMA_VERSION
    reached = current_schema_version(conn, settings) or 0
    if reached < wanted:
        _LOGGER.error("db | schema | still behind after migrating | reached=%s | wanted=%s", reached, wanted)
        return 1
    if not applied:
        _LOGGER.info("db | schema | already at version %s", reached)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply catalog mirror schema migrations")
    parser.add_argument("--dsn", default=None, help="PostgreSQL connection string overriding PROGCATALOG_DB_DSN.")
    parser.add_argument(
        "--target-version",
        type=int,
        default=None,
        help=f"Stop after this schema version (the catalog reader requires {EXPECTED_SCHEMA_VERSION}).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report the schema version and pending migrations; exits 1 when the schema is behind.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(name)s | %(levelname)s | %(message)s")
    settings = _resolve_settings(args.dsn)

    with connect(str(settings.dsn), connect_timeout=settings.connect_timeout_seconds) as conn:
        conn.execute(f"SET statement_timeout = {int(settings.statement_timeout_seconds * 1000)}")
        return run(conn, settings, target_version=args.target_version, dry_run=args.dry_run)


if __name__ == "__main__":
    sys.exit(main())
