"""GitHub REST API access."""

from .client import (
    GitHubAPIError,
    GitHubAccessDeniedError,
    GitHubClient,
    GitHubConnectivityError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)

__all__ = [
    "GitHubAPIError",
    "GitHubAccessDeniedError",
    "GitHubClient",
    "GitHubConnectivityError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
]
