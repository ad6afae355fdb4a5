"""Configuration utilities for the program catalog discovery and read paths."""

from __future__ import annotations

import os

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import (
    AnyHttpUrl,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    PostgresDsn,
    ValidationInfo,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DATA = Path(__file__).resolve().parent / "data"

DEFAULT_SEARCH_QUERIES: List[str] = [
    "solana program anchor rust stars:>10",
    "solana smart contract language:Rust",
    "solana defi protocol anchor",
    "solana nft contract metaplex",
    "solana staking program",
    "solana dex raydium orca",
    "solana lending protocol",
    "solana governance program",
    "solana wallet adapter",
    "solana token program",
]


class CollectorSettings(BaseSettings):
    """Settings for the GitHub discovery runs.

    Environment variables are prefixed with ``PROGCATALOG_``. For example, set
    ``PROGCATALOG_STORAGE_ROOT=/var/lib/progcatalog`` to move the catalog data.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROGCATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    github_api_base: AnyHttpUrl = Field(
        default="https://api.github.com",
        description="Base URL for the GitHub REST API.",
    )
    github_token: Optional[str] = Field(
        default=None,
        description="Optional GitHub token; raises the search quota from 60 to 5000 requests/hour.",
    )
    request_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        description="Total timeout applied to every GitHub request.",
    )
    retry_attempts: PositiveInt = Field(
        default=3,
        description="Number of attempts for transient HTTP failures.",
    )
    storage_root: Path = Field(
        default_factory=lambda: Path("data"),
        description="Root directory for the catalog, discovery logs, reports and the code cache.",
    )
    search_queries: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SEARCH_QUERIES),
        description="Keyword templates rotated through by discovery runs.",
    )
    queries_per_run: PositiveInt = Field(
        default=3,
        description="Number of search queries issued per discovery run.",
    )
    allowed_languages: List[str] = Field(
        default_factory=lambda: ["Rust", "TypeScript", "JavaScript"],
        description="Primary languages a repository must use to be catalogued.",
    )
    min_stars: int = Field(
        default=5,
        ge=0,
        description="Minimum star count for newly discovered repositories.",
    )
    max_new_per_run: PositiveInt = Field(
        default=50,
        description="Upper bound on new catalog entries added by a single run.",
    )
    per_page: PositiveInt = Field(
        default=100,
        le=100,
        description="Search results requested per page (GitHub caps this at 100).",
    )
    request_delay_seconds: NonNegativeFloat = Field(
        default=2.0,
        description="Pause between consecutive search queries to respect the search rate limit.",
    )

    def storage_directories(self) -> Dict[str, Path]:
        """Return resolved storage directories keyed by purpose."""

        root = self.storage_root.expanduser().resolve()
        directories = {
            "root": root,
            "reports": root / "reports",
            "code_cache": root / "code-cache",
            "temp": root / "temp",
        }
        return directories

    def ensure_storage(self) -> None:
        """Create required directories for discovery runs."""

        for path in self.storage_directories().values():
            path.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> CollectorSettings:
    """Return a cached ``CollectorSettings`` instance.

    Directory creation is performed once per process so the store, logs and
    cache can assume the layout exists.
    """

    settings = CollectorSettings()
    settings.ensure_storage()
    return settings


class CatalogDatabaseSettings(BaseSettings):
    """Configuration for the optional PostgreSQL mirror of the catalog."""

    model_config = SettingsConfigDict(
        env_prefix="PROGCATALOG_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = Field(
        default=False,
        description="Toggle reading from and syncing to the relational mirror.",
    )
    dsn: Optional[PostgresDsn] = Field(
        default=None,
        description="PostgreSQL connection string for the catalog mirror (falls back to DATABASE_URL).",
        validate_default=True,
    )
    schema_name: str = Field(
        default="progcatalog",
        description="Database schema holding the catalog tables.",
        min_length=1,
    )
    programs_table: str = Field(
        default="programs",
        description="Table name for mirrored program records.",
        min_length=1,
    )
    migrations_table: str = Field(
        default="db_migrations",
        description="Bookkeeping table storing applied migration versions.",
        min_length=1,
    )
    connect_timeout_seconds: PositiveInt = Field(
        default=5,
        description="Connection and pool checkout timeout for catalog reads.",
    )
    pool_min_size: PositiveInt = Field(
        default=1,
        description="Minimum number of pooled connections.",
    )
    pool_max_size: PositiveInt = Field(
        default=2,
        description="Maximum number of pooled connections; keep small for serverless Postgres.",
    )
    statement_timeout_seconds: PositiveFloat = Field(
        default=15.0,
        description="Timeout applied to statements issued against the mirror.",
    )

    @field_validator("dsn", mode="before")
    @classmethod
    def _resolve_dsn(
        cls,
        value: Optional[str],
        info: ValidationInfo,
    ) -> Optional[str]:
        if value is None:
            fallback = os.getenv("DATABASE_URL")
            if fallback:
                value = fallback
        data = info.data or {}
        enabled = bool(data.get("enabled"))
        if enabled and not value:
            raise ValueError("PROGCATALOG_DB_DSN must be set when PROGCATALOG_DB_ENABLED is true")
        return value


@lru_cache(maxsize=1)
def get_database_settings() -> CatalogDatabaseSettings:
    """Return cached settings governing the relational mirror."""

    return CatalogDatabaseSettings()


class CatalogReadSettings(BaseSettings):
    """Settings for the catalog read path."""

    model_config = SettingsConfigDict(
        env_prefix="PROGCATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    freshness_seconds: PositiveFloat = Field(
        default=300.0,
        description="How long a loaded snapshot is served from memory before re-reading.",
    )
    bundled_catalog_path: Path = Field(
        default_factory=lambda: _PACKAGE_DATA / "programs.json",
        description="JSON snapshot shipped with the application; the last-resort fallback.",
    )
    static_build: bool = Field(
        default=False,
        description="Set during static site generation to skip the relational store entirely.",
    )


@lru_cache(maxsize=1)
def get_read_settings() -> CatalogReadSettings:
    """Return cached read-path settings."""

    return CatalogReadSettings()


class SourceBrowserSettings(BaseSettings):
    """Settings for the on-demand source code viewer."""

    model_config = SettingsConfigDict(
        env_prefix="PROGCATALOG_BROWSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    cache_ttl_seconds: PositiveFloat = Field(
        default=24 * 60 * 60,
        description="Lifetime of cached repository code before it is fetched again.",
    )
    max_files: PositiveInt = Field(
        default=20,
        description="Maximum number of source files collected per repository.",
    )
    max_file_size_bytes: PositiveInt = Field(
        default=100 * 1024,
        description="Files larger than this are ignored.",
    )
    max_depth: int = Field(
        default=3,
        ge=0,
        description="Deepest directory level scanned below a starting directory.",
    )
    code_extensions: List[str] = Field(
        default_factory=lambda: [".rs", ".ts", ".tsx", ".js", ".jsx", ".sol", ".py", ".go", ".c", ".cpp", ".h"],
        description="File suffixes recognised as source code.",
    )
    priority_dirs: List[str] = Field(
        default_factory=lambda: ["src", "programs", "contracts", "program", "anchor"],
        description="Directories scanned before the repository root.",
    )
    max_concurrent_fetches: PositiveInt = Field(
        default=4,
        description="Number of raw file downloads in flight at once.",
    )
    archive_host: str = Field(
        default="github.com",
        description="Host serving repository zip archives.",
    )
    fallback_branches: List[str] = Field(
        default_factory=lambda: ["main", "master", "dev", "develop"],
        description="Branch names probed when the default branch cannot be looked up.",
    )

    @field_validator("code_extensions")
    @classmethod
    def _normalise_extensions(cls, value: List[str]) -> List[str]:
        normalised = []
        for extension in value:
            cleaned = extension.strip().lower()
            if not cleaned:
                continue
            normalised.append(cleaned if cleaned.startswith(".") else f".{cleaned}")
        return normalised


@lru_cache(maxsize=1)
def get_browser_settings() -> SourceBrowserSettings:
    """Return cached source browser settings."""

    return SourceBrowserSettings()


class CatalogConfig(BaseSettings):
    """Main configuration class combining all settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROGCATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def collector(self) -> CollectorSettings:
        return get_settings()

    @property
    def database(self) -> CatalogDatabaseSettings:
        return get_database_settings()

    @property
    def read(self) -> CatalogReadSettings:
        return get_read_settings()

    @property
    def browser(self) -> SourceBrowserSettings:
        return get_browser_settings()


@lru_cache(maxsize=1)
def get_config() -> CatalogConfig:
    """Return cached main configuration."""
    return CatalogConfig()
