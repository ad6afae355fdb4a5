"""Health checks for individual components."""

from .catalog import BundledCatalogHealthCheck, DiscoveryDataHealthCheck
from .database import DatabaseSchemaHealthCheck
from .github import GitHubRateLimitHealthCheck

__all__ = [
    "BundledCatalogHealthCheck",
    "DatabaseSchemaHealthCheck",
    "DiscoveryDataHealthCheck",
    "GitHubRateLimitHealthCheck",
]
