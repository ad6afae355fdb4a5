"""PostgreSQL projection of the JSON catalog."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from ..config import CatalogDatabaseSettings
from ..errors import SchemaMismatchError
from ..models import CatalogSnapshot, ProgramRecord, parse_timestamp
from .migrations import EXPECTED_SCHEMA_VERSION, current_schema_version

_LOGGER = logging.getLogger(__name__)

_COLUMNS: Tuple[str, ...] = (
    "identity",
    "full_name",
    "owner",
    "name",
    "url",
    "description",
    "stars",
    "language",
    "topics",
    "upstream_updated_at",
    "default_branch",
    "category",
    "sub_category",
    "discovered_at",
    "extra",
)


def record_to_row(record: ProgramRecord) -> Tuple[Any, ...]:
    """Convert a record into the positional parameters of the upsert statement."""

    identity = record.identity
    if identity is None:
        raise ValueError(f"Record {record.full_name!r} has no usable identity")
    return (
        identity,
        record.full_name,
        record.owner,
        record.name,
        record.url,
        record.description,
        max(0, int(record.stars)),
        record.language,
        list(record.topics),
        record.updated,
        record.default_branch,
        record.category,
        record.sub_category,
        record.discovered_at,
        Json(dict(record.extra)),
    )


def row_to_record(row: Mapping[str, Any]) -> ProgramRecord:
    extra = row.get("extra") or {}
    return ProgramRecord(
        full_name=row["full_name"],
        owner=row["owner"],
        name=row["name"],
        url=row.get("url") or f"https://github.com/{row['full_name']}",
        description=row.get("description"),
        stars=max(0, int(row.get("stars") or 0)),
        language=row.get("language"),
        topics=[str(topic) for topic in row.get("topics") or []],
        updated=parse_timestamp(row.get("upstream_updated_at")),
        default_branch=row.get("default_branch") or "main",
        category=row.get("category"),
        sub_category=row.get("sub_category"),
        discovered_at=parse_timestamp(row.get("discovered_at")),
        extra=dict(extra) if isinstance(extra, Mapping) else {},
    )


class CatalogMirror:
    """Reads from and rebuilds the relational copy of the catalog."""

    def __init__(self, settings: CatalogDatabaseSettings, pool: Optional[ConnectionPool] = None) -> None:
        if not settings.dsn and pool is None:
            raise ValueError("Catalog database DSN is required to use the relational mirror")
        self._settings = settings
        self._pool = pool
        self._table = sql.SQL(".").join(
            [sql.Identifier(settings.schema_name), sql.Identifier(settings.programs_table)]
        )
        columns = sql.SQL(", ").join(sql.Identifier(column) for column in _COLUMNS)
        placeholders = sql.SQL(", ").join(sql.Placeholder() for _ in _COLUMNS)
        updates = sql.SQL(", ").join(
            sql.SQL("{column} = EXCLUDED.{column}").format(column=sql.Identifier(column))
            for column in _COLUMNS
            if column != "identity"
        )
        self._select_sql = sql.SQL("SELECT {columns} FROM {table} ORDER BY stars DESC, identity").format(
            columns=columns, table=self._table
        )
        self._upsert_sql = sql.SQL(
            """
            INSERT INTO {table} ({columns})
            VALUES ({placeholders})
            ON CONFLICT (identity)
            DO UPDATE SET
                {updates},
                synced_at = NOW()
            """
        ).format(table=self._table, columns=columns, placeholders=placeholders, updates=updates)
        self._prune_sql = sql.SQL("DELETE FROM {table} WHERE NOT (identity = ANY(%s))").format(table=self._table)

    def _get_pool(self) -> ConnectionPool:
        if self._pool is None:
            timeout = float(self._settings.connect_timeout_seconds)
            self._pool = ConnectionPool(
                str(self._settings.dsn),
                min_size=self._settings.pool_min_size,
                max_size=max(self._settings.pool_min_size, self._settings.pool_max_size),
                timeout=timeout,
                kwargs={
                    "connect_timeout": int(timeout),
                    "options": f"-c statement_timeout={int(self._settings.statement_timeout_seconds * 1000)}",
                },
                name="progcatalog-mirror",
                open=False,
            )
            self._pool.open(wait=False)
        return self._pool

    def schema_version(self) -> Optional[int]:
        with self._get_pool().connection() as conn:
            return current_schema_version(conn, self._settings)

    def verify_schema(self) -> int:
        """Raise :class:`SchemaMismatchError` unless the pinned schema version is applied."""

        version = self.schema_version()
        if version != EXPECTED_SCHEMA_VERSION:
            raise SchemaMismatchError(
                f"Catalog schema version is {version!r}, expected {EXPECTED_SCHEMA_VERSION}",
                expected=EXPECTED_SCHEMA_VERSION,
                actual=version,
            )
        return version

    def read_records(self) -> List[ProgramRecord]:
        self.verify_schema()
        with self._get_pool().connection() as conn:
            with conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(self._select_sql)
                rows = cursor.fetchall()
        records: List[ProgramRecord] = []
        for row in rows:
            try:
                records.append(row_to_record(row))
            except (KeyError, TypeError, ValueError) as exc:
                _LOGGER.warning("db | skipping malformed row | identity=%s | error=%s", row.get("identity"), exc)
        return records

    def sync(self, snapshot: CatalogSnapshot) -> Dict[str, int]:
        """Make the table mirror ``snapshot`` exactly, in a single transaction."""

        self.verify_schema()
        rows: List[Tuple[Any, ...]] = []
        seen: set[str] = set()
        skipped = 0
        for record in snapshot.repos:
            identity = record.identity
            if identity is None or identity in seen:
                skipped += 1
                _LOGGER.warning("db | skipping record | full_name=%r | reason=invalid or duplicate identity", record.full_name)
                continue
            seen.add(identity)
            rows.append(record_to_row(record))

        with self._get_pool().connection() as conn:
            with conn.transaction():
                with conn.cursor() as cursor:
                    if rows:
                        cursor.executemany(self._upsert_sql, rows)
                    cursor.execute(self._prune_sql, (sorted(seen),))
                    pruned = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
        stats = {"upserted": len(rows), "pruned": pruned, "skipped": skipped}
        _LOGGER.info(
            "db | mirror synced | upserted=%s | pruned=%s | skipped=%s",
            stats["upserted"],
            stats["pruned"],
            stats["skipped"],
        )
        return stats

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None


def build_mirror(settings: CatalogDatabaseSettings) -> Optional[CatalogMirror]:
    """Return a mirror when the relational store is enabled and configured."""

    if not settings.enabled or not settings.dsn:
        return None
    return CatalogMirror(settings)


__all__ = [
    "CatalogMirror",
    "build_mirror",
    "record_to_row",
    "row_to_record",
]
