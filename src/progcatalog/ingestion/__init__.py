"""Repository discovery against the GitHub search API."""

from .collector import RepositoryCollector, exit_code_for, record_from_search_item

__all__ = [
    "RepositoryCollector",
    "exit_code_for",
    "record_from_search_item",
]
