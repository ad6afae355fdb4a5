"""Core records persisted in the program catalog."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .errors import CatalogIntegrityError

DEFAULT_BRANCH = "main"

# JSON keys produced by collection; everything else on a record is curated.
_KNOWN_KEYS = frozenset(
    {
        "fullName",
        "owner",
        "name",
        "url",
        "description",
        "stars",
        "language",
        "updated",
        "topics",
        "category",
        "subCategory",
        "defaultBranch",
        "discoveredAt",
    }
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def record_identity(owner: Optional[str], name: Optional[str]) -> Optional[str]:
    """Return the case-insensitive ``owner/name`` identity, or ``None`` when unusable."""

    owner = (owner or "").strip()
    name = (name or "").strip()
    if not owner or not name or "/" in owner or "/" in name:
        return None
    return f"{owner}/{name}".lower()


def _split_full_name(full_name: str) -> tuple[str, str]:
    owner, sep, name = full_name.strip().partition("/")
    if not sep:
        return "", ""
    return owner.strip(), name.strip()


@dataclass(slots=True)
class ProgramRecord:
    """One catalogued repository."""

    full_name: str
    owner: str
    name: str
    url: str = ""
    description: Optional[str] = None
    stars: int = 0
    language: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    updated: Optional[datetime] = None
    default_branch: str = DEFAULT_BRANCH
    category: Optional[str] = None
    sub_category: Optional[str] = None
    discovered_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> Optional[str]:
        return record_identity(self.owner, self.name)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProgramRecord":
        full_name = str(payload.get("fullName") or "").strip()
        owner = str(payload.get("owner") or "").strip()
        name = str(payload.get("name") or "").strip()
        if full_name and not (owner and name):
            split_owner, split_name = _split_full_name(full_name)
            owner = owner or split_owner
            name = name or split_name
        if not full_name and owner and name:
            full_name = f"{owner}/{name}"
        try:
            stars = max(0, int(payload.get("stars") or 0))
        except (TypeError, ValueError):
            stars = 0
        topics = [str(topic) for topic in payload.get("topics") or [] if topic]
        return cls(
            full_name=full_name,
            owner=owner,
            name=name,
            url=str(payload.get("url") or (f"https://github.com/{full_name}" if full_name else "")),
            description=payload.get("description") or None,
            stars=stars,
            language=payload.get("language") or None,
            topics=topics,
            updated=parse_timestamp(payload.get("updated")),
            default_branch=str(payload.get("defaultBranch") or DEFAULT_BRANCH),
            category=payload.get("category") or None,
            sub_category=payload.get("subCategory") or None,
            discovered_at=parse_timestamp(payload.get("discoveredAt")),
            extra={key: value for key, value in payload.items() if key not in _KNOWN_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "fullName": self.full_name,
                "owner": self.owner,
                "name": self.name,
                "url": self.url,
                "description": self.description,
                "stars": self.stars,
                "language": self.language,
                "updated": format_timestamp(self.updated),
                "topics": list(self.topics),
                "category": self.category,
                "subCategory": self.sub_category,
                "defaultBranch": self.default_branch,
            }
        )
        if self.discovered_at is not None:
            payload["discoveredAt"] = format_timestamp(self.discovered_at)
        return payload


@dataclass(slots=True)
class CatalogSnapshot:
    """The full record set plus provenance metadata."""

    scraped_at: datetime
    total_repos: int
    keywords_searched: List[str]
    repos: List[ProgramRecord]
    source: str = "bundled"

    @classmethod
    def build(
        cls,
        records: List[ProgramRecord],
        keywords: Optional[List[str]] = None,
        *,
        scraped_at: Optional[datetime] = None,
        source: str = "bundled",
    ) -> "CatalogSnapshot":
        return cls(
            scraped_at=scraped_at or utcnow(),
            total_repos=len(records),
            keywords_searched=list(keywords or []),
            repos=list(records),
            source=source,
        )

    @classmethod
    def from_dict(cls, payload: Any, *, source: str = "bundled") -> "CatalogSnapshot":
        if not isinstance(payload, Mapping):
            raise CatalogIntegrityError("Catalog document must be a JSON object")
        raw_repos = payload.get("repos")
        if not isinstance(raw_repos, list):
            raise CatalogIntegrityError("Catalog document is missing its 'repos' list")
        if not all(isinstance(entry, Mapping) for entry in raw_repos):
            raise CatalogIntegrityError("Catalog 'repos' entries must be JSON objects")
        repos = [ProgramRecord.from_dict(entry) for entry in raw_repos]
        total = payload.get("totalRepos", len(repos))
        if not isinstance(total, int) or total != len(repos):
            raise CatalogIntegrityError(
                f"Catalog totalRepos={total!r} does not match {len(repos)} records"
            )
        return cls(
            scraped_at=parse_timestamp(payload.get("scrapedAt")) or utcnow(),
            total_repos=total,
            keywords_searched=[str(k) for k in payload.get("keywordsSearched") or []],
            repos=repos,
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.total_repos != len(self.repos):
            raise CatalogIntegrityError(
                f"Refusing to serialise snapshot: totalRepos={self.total_repos} but {len(self.repos)} records"
            )
        return {
            "scrapedAt": format_timestamp(self.scraped_at),
            "totalRepos": self.total_repos,
            "keywordsSearched": list(self.keywords_searched),
            "repos": [record.to_dict() for record in self.repos],
        }


@dataclass(slots=True)
class DiscoveryLog:
    """Summary of the most recent discovery run; overwritten every run."""

    run_at: datetime
    queries: List[str] = field(default_factory=list)
    new_records: int = 0
    updated_records: int = 0
    skipped_records: int = 0
    total_records: int = 0
    errors: List[str] = field(default_factory=list)
    halted_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastRun": format_timestamp(self.run_at),
            "queriesUsed": list(self.queries),
            "newProgramsThisRun": self.new_records,
            "updatedPrograms": self.updated_records,
            "skippedPrograms": self.skipped_records,
            "totalPrograms": self.total_records,
            "errors": list(self.errors),
            "haltedReason": self.halted_reason,
        }


__all__ = [
    "CatalogSnapshot",
    "DEFAULT_BRANCH",
    "DiscoveryLog",
    "ProgramRecord",
    "format_timestamp",
    "parse_timestamp",
    "record_identity",
    "utcnow",
]
