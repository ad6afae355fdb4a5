"""Catalog file health checks."""

import json
from typing import Optional

from ...catalog.query import catalog_diagnostics
from ...catalog.resolver import load_bundled_snapshot
from ...catalog.store import CatalogStore
from ...config import CatalogReadSettings, CollectorSettings, get_read_settings, get_settings
from ...errors import CatalogIntegrityError
from ...models import parse_timestamp, utcnow
from ...storage import build_storage_layout
from ..base import HealthCheck, HealthStatus


class BundledCatalogHealthCheck(HealthCheck):
    """Check the snapshot shipped with the package, the read path's last resort."""

    name = "Bundled Catalog"

    def __init__(self, settings: Optional[CatalogReadSettings] = None):
        self._settings = settings

    async def _perform_check(self):
        settings = self._settings or get_read_settings()
        try:
            snapshot = load_bundled_snapshot(settings)
        except (OSError, CatalogIntegrityError) as e:
            return (
                HealthStatus.ERROR,
                f"Bundled snapshot unusable: {str(e)[:100]}",
                {"path": str(settings.bundled_catalog_path)}
            )
        diagnostics = catalog_diagnostics(snapshot)
        details = {
            "path": str(settings.bundled_catalog_path),
            "records": snapshot.total_repos,
            "duplicates": diagnostics["duplicates"],
        }
        if not snapshot.total_repos:
            return (HealthStatus.WARNING, "Bundled snapshot is empty", details)
        if diagnostics["duplicates"]:
            return (
                HealthStatus.WARNING,
                f"{len(diagnostics['duplicates'])} duplicate identities in bundled snapshot",
                details
            )
        return (HealthStatus.HEALTHY, f"{snapshot.total_repos:,} programs bundled", details)


class DiscoveryDataHealthCheck(HealthCheck):
    """Check the working catalog and the most recent discovery log."""

    name = "Discovery Data"
    stale_after_hours: float = 24.0

    def __init__(self, settings: Optional[CollectorSettings] = None):
        self._settings = settings

    async def _perform_check(self):
        layout = build_storage_layout(self._settings or get_settings())
        store = CatalogStore(layout.catalog)
        if not store.exists():
            return (
                HealthStatus.WARNING,
                "No catalog yet - run progcatalog-discover",
                {"catalog": str(layout.catalog)}
            )
        try:
            snapshot = store.load()
        except CatalogIntegrityError as e:
            return (HealthStatus.ERROR, f"Catalog corrupt: {str(e)[:100]}", {"catalog": str(layout.catalog)})

        details = {"catalog": str(layout.catalog), "records": snapshot.total_repos}
        if not layout.discovery_log.exists():
            return (HealthStatus.WARNING, "Catalog present but no discovery log", details)
        try:
            log = json.loads(layout.discovery_log.read_text(encoding="utf-8"))
        except ValueError as e:
            return (HealthStatus.WARNING, f"Discovery log unreadable: {e}", details)

        last_run = parse_timestamp(log.get("lastRun"))
        details.update({"last_run": log.get("lastRun"), "halted_reason": log.get("haltedReason")})
        if log.get("haltedReason"):
            return (HealthStatus.WARNING, f"Last run halted: {log['haltedReason']}", details)
        if last_run is None or (utcnow() - last_run).total_seconds() > self.stale_after_hours * 3600:
            return (HealthStatus.WARNING, "Last discovery run is stale", details)
        return (HealthStatus.HEALTHY, f"{snapshot.total_repos:,} programs, last run {log.get('lastRun')}", details)
