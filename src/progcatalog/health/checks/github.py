"""GitHub API quota health check."""

from typing import Optional

from ...config import CollectorSettings, get_settings
from ...github.client import GitHubClient
from ..base import HealthCheck, HealthStatus


class GitHubRateLimitHealthCheck(HealthCheck):
    """Report remaining core and search quota."""

    name = "GitHub API"
    timeout_seconds = 15.0
    low_quota_ratio: float = 0.1

    def __init__(self, settings: Optional[CollectorSettings] = None):
        self._settings = settings

    async def _perform_check(self):
        settings = self._settings or get_settings()
        async with GitHubClient(settings) as client:
            resources = await client.rate_limit()

        details = {
            name: {"remaining": int(bucket.get("remaining", 0)), "limit": int(bucket.get("limit", 0))}
            for name, bucket in resources.items()
            if name in ("core", "search")
        }
        details["authenticated"] = bool(settings.github_token)
        exhausted = [name for name in ("core", "search") if name in details and details[name]["remaining"] == 0]
        if exhausted:
            return (HealthStatus.ERROR, f"Quota exhausted: {', '.join(exhausted)}", details)
        low = [
            name
            for name in ("core", "search")
            if name in details and details[name]["remaining"] < details[name]["limit"] * self.low_quota_ratio
        ]
        if low:
            return (HealthStatus.WARNING, f"Quota low: {', '.join(low)}", details)
        core = details.get("core", {"remaining": 0, "limit": 0})
        return (HealthStatus.HEALTHY, f"{core['remaining']}/{core['limit']} core requests left", details)
