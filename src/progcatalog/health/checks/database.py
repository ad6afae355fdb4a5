"""Catalog mirror schema health check."""

import asyncio
from typing import Any, Dict, Optional

import psycopg
from psycopg import sql

from ...config import CatalogDatabaseSettings, get_database_settings
from ...db.migrations import EXPECTED_SCHEMA_VERSION, current_schema_version
from ..base import HealthCheck, HealthStatus


class DatabaseSchemaHealthCheck(HealthCheck):
    """Check that the mirror is reachable and carries the pinned schema version."""

    name = "Catalog Database"
    timeout_seconds = 10.0

    def __init__(self, settings: Optional[CatalogDatabaseSettings] = None):
        self._settings = settings

    async def _perform_check(self):
        settings = self._settings or get_database_settings()
        if not settings.enabled or not settings.dsn:
            return (
                HealthStatus.WARNING,
                "Catalog database disabled in config; readers use the bundled snapshot",
                {"enabled": False}
            )
        try:
            version, rows = await asyncio.to_thread(self._inspect, settings)
        except psycopg.Error as e:
            return (
                HealthStatus.ERROR,
                f"Cannot connect: {str(e)[:100]}",
                {"error": str(e)[:100]}
            )

        details: Dict[str, Any] = {
            "schema": settings.schema_name,
            "schema_version": version,
            "expected_version": EXPECTED_SCHEMA_VERSION,
            "programs": rows,
        }
        if version != EXPECTED_SCHEMA_VERSION:
            return (
                HealthStatus.ERROR,
                f"Schema version {version} does not match expected {EXPECTED_SCHEMA_VERSION}; run progcatalog-migrate",
                details
            )
        if not rows:
            return (
                HealthStatus.WARNING,
                "Schema current but no programs mirrored - run progcatalog-sync",
                details
            )
        return (
            HealthStatus.HEALTHY,
            f"Schema v{version} with {rows:,} programs",
            details
        )

    def _inspect(self, settings: CatalogDatabaseSettings) -> tuple[Optional[int], int]:
        with psycopg.connect(str(settings.dsn), connect_timeout=settings.connect_timeout_seconds) as conn:
            version = current_schema_version(conn, settings)
            if version is None:
                return None, 0
            table = sql.SQL(".").join([sql.Identifier(settings.schema_name), sql.Identifier(settings.programs_table)])
            with conn.cursor() as cursor:
                cursor.execute(sql.SQL("SELECT COUNT(*) FROM {table}").format(table=table))
                row = cursor.fetchone()
        return version, int(row[0]) if row else 0
