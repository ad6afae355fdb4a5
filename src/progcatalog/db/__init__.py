"""Database helpers for the catalog mirror."""

from .migrations import (
    EXPECTED_SCHEMA_VERSION,
    MIGRATIONS,
    Migration,
    apply_migrations,
    current_schema_version,
    get_pending_migrations,
)

__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MIGRATIONS",
    "Migration",
    "apply_migrations",
    "current_schema_version",
    "get_pending_migrations",
]
