"""Catalog-level exceptions shared by the store, resolver and mirror."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for catalog persistence failures."""


class CatalogIntegrityError(CatalogError):
    """Raised when a catalog document is malformed or internally inconsistent."""


class SchemaMismatchError(CatalogError):
    """Raised when the relational mirror does not match the pinned schema version."""

    def __init__(self, message: str, *, expected: int | None = None, actual: int | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


__all__ = [
    "CatalogError",
    "CatalogIntegrityError",
    "SchemaMismatchError",
]
