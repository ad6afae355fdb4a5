"""Health check runner and orchestration."""

import asyncio
from typing import List, Optional, Sequence

from .base import HealthCheck, HealthCheckResult, HealthStatus
from .checks import (
    BundledCatalogHealthCheck,
    DatabaseSchemaHealthCheck,
    DiscoveryDataHealthCheck,
    GitHubRateLimitHealthCheck,
)


def default_checks(*, include_network: bool = True) -> List[HealthCheck]:
    checks: List[HealthCheck] = [
        BundledCatalogHealthCheck(),
        DiscoveryDataHealthCheck(),
        DatabaseSchemaHealthCheck(),
    ]
    if include_network:
        checks.append(GitHubRateLimitHealthCheck())
    return checks


class HealthCheckRunner:
    """Orchestrate all health checks."""

    def __init__(self, checks: Optional[Sequence[HealthCheck]] = None):
        self.checks = list(checks) if checks is not None else default_checks()

    async def run_all(self) -> List[HealthCheckResult]:
        """Run all health checks in parallel."""
        tasks = [check.check() for check in self.checks]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        final_results = []
        for check, result in zip(self.checks, results):
            if isinstance(result, Exception):
                final_results.append(HealthCheckResult(
                    name=check.name,
                    status=HealthStatus.ERROR,
                    message=f"Check crashed: {str(result)[:100]}",
                    error=result
                ))
            else:
                final_results.append(result)

        return final_results

    def summarize(self, results: List[HealthCheckResult]) -> dict:
        """Generate summary statistics."""
        healthy = sum(1 for r in results if r.status == HealthStatus.HEALTHY)
        warning = sum(1 for r in results if r.status == HealthStatus.WARNING)
        error = sum(1 for r in results if r.status == HealthStatus.ERROR)

        overall = HealthStatus.HEALTHY
        if error > 0:
            overall = HealthStatus.ERROR
        elif warning > 0:
            overall = HealthStatus.WARNING

        return {
            "total": len(results),
            "healthy": healthy,
            "warning": warning,
            "error": error,
            "overall_status": overall
        }
