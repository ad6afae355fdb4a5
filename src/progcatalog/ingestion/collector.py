"""Discovery coordinator that turns GitHub search results into catalog records."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..catalog.store import CatalogStore
from ..classification import Classifier, DEFAULT_CLASSIFIER
from ..config import CollectorSettings
from ..github.client import GitHubAPIError, GitHubClient, GitHubRateLimitError
from ..models import DiscoveryLog, ProgramRecord, format_timestamp, parse_timestamp, utcnow
from ..storage import StorageLayout, ensure_storage_layout

_LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_RATE_LIMITED = 2


def record_from_search_item(
    item: Mapping[str, Any],
    classifier: Optional[Classifier] = None,
) -> ProgramRecord:
    """Project a GitHub search hit onto a classified, timestamped record."""

    owner = item.get("owner") or {}
    owner_login = owner.get("login", "") if isinstance(owner, Mapping) else str(owner)
    topics = [str(topic) for topic in item.get("topics") or [] if topic]
    classification = (classifier or DEFAULT_CLASSIFIER).classify(item.get("name"), item.get("description"), topics)
    full_name = str(item.get("full_name") or "")
    return ProgramRecord(
        full_name=full_name,
        owner=str(owner_login or ""),
        name=str(item.get("name") or ""),
        url=str(item.get("html_url") or (f"https://github.com/{full_name}" if full_name else "")),
        description=item.get("description") or None,
        stars=max(0, int(item.get("stargazers_count") or 0)),
        language=item.get("language") or None,
        topics=topics,
        updated=parse_timestamp(item.get("updated_at")),
        default_branch=str(item.get("default_branch") or "main"),
        category=classification.category,
        sub_category=classification.sub_category,
        discovered_at=utcnow(),
    )


def looks_like_fork(record: ProgramRecord) -> bool:
    name = record.name.lower()
    return name.endswith("-fork") or "fork-" in name


@dataclass(slots=True)
class _RunState:
    candidates: List[ProgramRecord] = field(default_factory=list)
    refreshed: List[ProgramRecord] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)
    rejected: int = 0


class RepositoryCollector:
    """Runs one discovery pass: rotate queries, filter hits, merge, log."""

    def __init__(
        self,
        settings: CollectorSettings,
        storage: StorageLayout,
        *,
        classifier: Optional[Classifier] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._classifier = classifier or DEFAULT_CLASSIFIER
        self._logger = logger or _LOGGER
        ensure_storage_layout(storage)
        self._store = CatalogStore(storage.catalog)
        self._allowed_languages = {language.lower() for language in settings.allowed_languages}

    @property
    def store(self) -> CatalogStore:
        return self._store

    def read_checkpoint(self) -> int:
        path = self._storage.checkpoint
        if not path.exists():
            return 0
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return max(0, int(payload.get("nextQueryIndex", 0)))
        except (ValueError, TypeError, AttributeError) as exc:
            self._logger.warning("discovery | ignoring unreadable checkpoint | path=%s | error=%s", path, exc)
            return 0

    def write_checkpoint(self, index: int) -> None:
        payload = {"nextQueryIndex": index, "updatedAt": format_timestamp(utcnow())}
        self._storage.checkpoint.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def planned_queries(self, start: Optional[int] = None) -> List[tuple[int, str]]:
        """Return ``(index, query)`` pairs for this run, wrapping around the query list."""

        queries = self._settings.search_queries
        if not queries:
            return []
        offset = self.read_checkpoint() if start is None else start
        count = min(self._settings.queries_per_run, len(queries))
        return [((offset + step) % len(queries), queries[(offset + step) % len(queries)]) for step in range(count)]

    def accepts(self, record: ProgramRecord) -> bool:
        if record.identity is None:
            return False
        if record.stars < self._settings.min_stars:
            return False
        if (record.language or "").lower() not in self._allowed_languages:
            return False
        return not looks_like_fork(record)

    async def run(self, *, queries: Optional[Sequence[str]] = None) -> DiscoveryLog:
        existing = self._store.load()
        known = {record.identity for record in existing.repos if record.identity}
        log = DiscoveryLog(run_at=utcnow(), total_records=existing.total_repos)
        state = _RunState()
        plan = list(enumerate(queries)) if queries is not None else self.planned_queries()
        next_index: Optional[int] = None

        async with GitHubClient(self._settings) as client:
            for position, (index, query) in enumerate(plan):
                if len(state.candidates) >= self._settings.max_new_per_run:
                    self._logger.info("discovery | reached new record limit | limit=%s", self._settings.max_new_per_run)
                    break
                if position and self._settings.request_delay_seconds:
                    await asyncio.sleep(self._settings.request_delay_seconds)
                log.queries.append(query)
                try:
                    items = await client.search_repositories(query, per_page=self._settings.per_page)
                except GitHubRateLimitError as exc:
                    log.errors.append(f"Query {query!r} halted by rate limit: {exc}")
                    log.halted_reason = "rate_limited"
                    next_index = index
                    self._logger.warning("discovery | rate limited | query=%s | reset_at=%s", query, exc.reset_at)
                    break
                except GitHubAPIError as exc:
                    log.errors.append(f"Query {query!r} failed: {exc}")
                    self._logger.error("discovery | query failed | query=%s | error=%s", query, exc)
                    continue
                self._absorb(items, known, state)
                self._logger.info(
                    "discovery | query complete | query=%s | hits=%s | new=%s",
                    query,
                    len(items),
                    len(state.candidates),
                )

        if next_index is None and queries is None and plan:
            next_index = (plan[-1][0] + 1) % len(self._settings.search_queries)
        additions = state.candidates[: self._settings.max_new_per_run]
        result = self._store.merge_and_save([*state.refreshed, *additions], keywords=log.queries)
        log.new_records = result.added
        log.updated_records = result.updated
        log.skipped_records = result.skipped + state.rejected
        log.total_records = len(result.records)
        # explicit query lists bypass rotation and leave the checkpoint alone
        if next_index is not None and queries is None:
            self.write_checkpoint(next_index)
        self._write_log(log)
        return log

    def _absorb(self, items: Sequence[Mapping[str, Any]], known: set[Optional[str]], state: _RunState) -> None:
        for item in items:
            if item.get("fork"):
                state.rejected += 1
                continue
            try:
                record = record_from_search_item(item, self._classifier)
            except (TypeError, ValueError) as exc:
                state.rejected += 1
                self._logger.debug("discovery | unusable search item | error=%s", exc)
                continue
            identity = record.identity
            if identity is None:
                state.rejected += 1
                continue
            if identity in known:
                state.refreshed.append(record)
                continue
            if identity in state.seen:
                continue
            if not self.accepts(record):
                state.rejected += 1
                continue
            state.seen.add(identity)
            state.candidates.append(record)

    def _write_log(self, log: DiscoveryLog) -> None:
        self._storage.discovery_log.write_text(json.dumps(log.to_dict(), indent=2, sort_keys=True), encoding="utf-8")


def exit_code_for(log: DiscoveryLog) -> int:
    if log.halted_reason == "rate_limited":
        return EXIT_RATE_LIMITED
    if log.errors:
        return EXIT_ERRORS
    return EXIT_OK


__all__ = [
    "EXIT_ERRORS",
    "EXIT_OK",
    "EXIT_RATE_LIMITED",
    "RepositoryCollector",
    "exit_code_for",
    "looks_like_fork",
    "record_from_search_item",
]
