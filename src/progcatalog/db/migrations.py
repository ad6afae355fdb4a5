"""Migration utilities for the catalog mirror schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from psycopg import Connection, sql

from ..config import CatalogDatabaseSettings

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """Represents a discrete database migration."""

    version: int
    name: str
    apply: Callable[[Connection, CatalogDatabaseSettings], None]


def _qualified_identifier(schema: str, name: str) -> sql.Composed:
    return sql.SQL(".").join([sql.Identifier(schema), sql.Identifier(name)])


def _ensure_migrations_table(conn: Connection, settings: CatalogDatabaseSettings) -> None:
    conn.execute(sql.SQL("CREATE SCHEMA IF NOT EXISTS {schema}").format(schema=sql.Identifier(settings.schema_name)))
    table = _qualified_identifier(settings.schema_name, settings.migrations_table)
    statement = sql.SQL(
        """
        CREATE TABLE IF NOT EXISTS {table} (
            version INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """
    ).format(table=table)
    conn.execute(statement)


def _table_exists(conn: Connection, schema: str, table: str) -> bool:
    query = sql.SQL(
        """
        SELECT 1
        FROM information_schema.tables
        WHERE table_schema = %s
          AND table_name = %s
        """
    )
    with conn.cursor() as cursor:
        cursor.execute(query, (schema, table))
        return cursor.fetchone() is not None


def _apply_create_programs(conn: Connection, settings: CatalogDatabaseSettings) -> None:
    schema_identifier = sql.Identifier(settings.schema_name)
    table_identifier = _qualified_identifier(settings.schema_name, settings.programs_table)

    conn.execute(sql.SQL("CREATE SCHEMA IF NOT EXISTS {schema}").format(schema=schema_identifier))
    conn.execute(
        sql.SQL(
            """
            CREATE TABLE IF NOT EXISTS {table} (
                identity TEXT PRIMARY KEY,
                full_name TEXT NOT NULL,
                owner TEXT NOT NULL,
                name TEXT NOT NULL,
                url TEXT NOT NULL DEFAULT '',
                description TEXT,
                stars INTEGER NOT NULL DEFAULT 0 CHECK (stars >= 0),
                language TEXT,
                topics TEXT[] NOT NULL DEFAULT '{{}}',
                upstream_updated_at TIMESTAMPTZ,
                default_branch TEXT NOT NULL DEFAULT 'main',
                category TEXT,
                sub_category TEXT,
                discovered_at TIMESTAMPTZ,
                extra JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                synced_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        ).format(table=table_identifier)
    )


def _apply_create_listing_indexes(conn: Connection, settings: CatalogDatabaseSettings) -> None:
    table_identifier = _qualified_identifier(settings.schema_name, settings.programs_table)
    prefix = f"{settings.schema_name}_{settings.programs_table}"
    conn.execute(
        sql.SQL("CREATE INDEX IF NOT EXISTS {index_name} ON {table} (stars DESC)").format(
            index_name=sql.Identifier(f"{prefix}_stars_idx"),
            table=table_identifier,
        )
    )
    conn.execute(
        sql.SQL("CREATE INDEX IF NOT EXISTS {index_name} ON {table} (category, sub_category)").format(
            index_name=sql.Identifier(f"{prefix}_category_idx"),
            table=table_identifier,
        )
    )


MIGRATIONS: tuple[Migration, ...] = (
    Migration(version=1, name="create_programs", apply=_apply_create_programs),
    Migration(version=2, name="create_listing_indexes", apply=_apply_create_listing_indexes),
)

EXPECTED_SCHEMA_VERSION = max(migration.version for migration in MIGRATIONS)


def _fetch_applied_versions(conn: Connection, settings: CatalogDatabaseSettings) -> List[int]:
    table = _qualified_identifier(settings.schema_name, settings.migrations_table)
    query = sql.SQL("SELECT version FROM {table} ORDER BY version").format(table=table)
    with conn.cursor() as cursor:
        cursor.execute(query)
        rows = cursor.fetchall()
    return [int(row[0]) for row in rows]


def _record_migration(conn: Connection, settings: CatalogDatabaseSettings, migration: Migration) -> None:
    table = _qualified_identifier(settings.schema_name, settings.migrations_table)
    insert = sql.SQL("INSERT INTO {table} (version, name) VALUES (%s, %s)").format(table=table)
    with conn.cursor() as cursor:
        cursor.execute(insert, (migration.version, migration.name))


def current_schema_version(conn: Connection, settings: CatalogDatabaseSettings) -> Optional[int]:
    """Return the highest applied version, or ``None`` when nothing was ever migrated.

    Read-only: unlike :func:`get_pending_migrations` it never creates the
    bookkeeping table.
    """

    if not _table_exists(conn, settings.schema_name, settings.migrations_table):
        return None
    versions = _fetch_applied_versions(conn, settings)
    return versions[-1] if versions else None


def get_pending_migrations(conn: Connection, settings: CatalogDatabaseSettings) -> List[Migration]:
    _ensure_migrations_table(conn, settings)
    applied = set(_fetch_applied_versions(conn, settings))
    return [migration for migration in MIGRATIONS if migration.version not in applied]


def apply_migrations(
    conn: Connection,
    settings: CatalogDatabaseSettings,
    *,
    target_version: int | None = None,
) -> List[Migration]:
    """Apply migrations up to the requested version."""

    if target_version is not None and target_version < 0:
        raise ValueError("target_version must be a positive integer")

    _ensure_migrations_table(conn, settings)

    applied_versions = set(_fetch_applied_versions(conn, settings))
    applied: List[Migration] = []

    for migration in MIGRATIONS:
        if migration.version in applied_versions:
            continue
        if target_version is not None and migration.version > target_version:
            break

        with conn.transaction():
            _LOGGER.info("db | applying migration | version=%s | name=%s", migration.version, migration.name)
            migration.apply(conn, settings)
            _record_migration(conn, settings, migration)
        applied.append(migration)

    return applied


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MIGRATIONS",
    "Migration",
    "apply_migrations",
    "current_schema_version",
    "get_pending_migrations",
]
