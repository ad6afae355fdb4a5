"""Audit catalog records against the live GitHub state."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..browser.archive import probe_archive
from ..browser.fetcher import SourceBrowser
from ..config import SourceBrowserSettings, get_browser_settings
from ..github.client import (
    GitHubAPIError,
    GitHubAccessDeniedError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from ..models import ProgramRecord, format_timestamp, utcnow

_LOGGER = logging.getLogger(__name__)


class Severity(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.NONE: 0, Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


class IssueCategory(str, Enum):
    REPO_NOT_FOUND = "repoNotFound"
    REPO_PRIVATE = "repoPrivate"
    REPO_ARCHIVED = "repoArchived"
    NO_CODE_FILES_FOUND = "noCodeFilesFound"
    ZIP_DOWNLOAD_ISSUE = "zipDownloadIssue"
    RATE_LIMITED = "rateLimited"
    OTHER_ERROR = "otherError"


_RECOMMENDATIONS: Dict[IssueCategory, Dict[str, str]] = {
    IssueCategory.REPO_NOT_FOUND: {
        "category": "Deleted/Renamed Repositories",
        "action": "Remove from the catalog or update with the new URL",
        "priority": Severity.HIGH.value,
    },
    IssueCategory.REPO_PRIVATE: {
        "category": "Private Repositories",
        "action": "Remove from the catalog; no longer publicly accessible",
        "priority": Severity.HIGH.value,
    },
    IssueCategory.NO_CODE_FILES_FOUND: {
        "category": "No Code Files Found",
        "action": "Investigate; the scanner may need additional file patterns or directories",
        "priority": Severity.MEDIUM.value,
        "note": "Some repositories are documentation-only or use a non-standard layout",
    },
    IssueCategory.ZIP_DOWNLOAD_ISSUE: {
        "category": "ZIP Download Issues",
        "action": "Record the declared default branch instead of guessing branch names",
        "priority": Severity.LOW.value,
    },
    IssueCategory.REPO_ARCHIVED: {
        "category": "Archived Repositories",
        "action": "Mark as archived or deprioritise in search results",
        "priority": Severity.LOW.value,
    },
}


class QualityClient(Protocol):
    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        ...

    async def url_exists(self, url: str) -> bool:
        ...


@dataclass(slots=True)
class RepoAssessment:
    """Findings for one catalogued repository."""

    full_name: str
    url: str
    stars: int
    language: Optional[str]
    updated: Optional[datetime]
    issues: List[str] = field(default_factory=list)
    categories: List[IssueCategory] = field(default_factory=list)
    severity: Severity = Severity.NONE
    default_branch: Optional[str] = None
    code_files_found: int = 0
    sample_files: List[str] = field(default_factory=list)
    archive_branch: Optional[str] = None

    def flag(self, category: IssueCategory, message: str, severity: Severity) -> None:
        self.categories.append(category)
        self.issues.append(message)
        if severity.rank > self.severity.rank:
            self.severity = severity

    @property
    def healthy(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "fullName": self.full_name,
            "url": self.url,
            "stars": self.stars,
            "language": self.language,
            "updated": format_timestamp(self.updated),
            "issues": list(self.issues),
            "severity": self.severity.value,
        }
        if self.default_branch:
            payload["defaultBranch"] = self.default_branch
        if self.code_files_found:
            payload["codeFilesFound"] = self.code_files_found
            payload["sampleFiles"] = list(self.sample_files)
        if self.archive_branch:
            payload["zipWorks"] = True
            payload["zipBranch"] = self.archive_branch
        return payload


@dataclass(slots=True)
class QualityReport:
    generated_at: datetime
    checked: int = 0
    working: int = 0
    with_issues: List[RepoAssessment] = field(default_factory=list)
    issue_categories: Counter = field(default_factory=Counter)
    halted_reason: Optional[str] = None

    def add(self, assessment: RepoAssessment) -> None:
        self.checked += 1
        if assessment.healthy:
            self.working += 1
            return
        self.with_issues.append(assessment)
        self.issue_categories.update(assessment.categories)

    def recommendations(self) -> List[Dict[str, Any]]:
        recommendations = []
        for category, template in _RECOMMENDATIONS.items():
            count = self.issue_categories.get(category, 0)
            if count:
                recommendations.append({**template, "count": count})
        return recommendations

    def summary(self) -> Dict[str, Any]:
        def percentage(part: int) -> float:
            return round(part / self.checked * 100, 2) if self.checked else 0.0

        severities = Counter(item.severity for item in self.with_issues)
        return {
            "workingPercentage": percentage(self.working),
            "issuePercentage": percentage(len(self.with_issues)),
            "highSeverityIssues": severities.get(Severity.HIGH, 0),
            "mediumSeverityIssues": severities.get(Severity.MEDIUM, 0),
            "lowSeverityIssues": severities.get(Severity.LOW, 0),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": format_timestamp(self.generated_at),
            "totalProgramsChecked": self.checked,
            "programsWorkingCorrectly": self.working,
            "programsWithIssues": [item.to_dict() for item in self.with_issues],
            "issueCategories": {category.value: self.issue_categories.get(category, 0) for category in IssueCategory},
            "recommendations": self.recommendations(),
            "summary": self.summary(),
            "haltedReason": self.halted_reason,
        }


class QualityChecker:
    """Check existence, visibility, code availability and archive links of records."""

    def __init__(
        self,
        client: QualityClient,
        browser: SourceBrowser,
        settings: Optional[SourceBrowserSettings] = None,
        *,
        request_delay_seconds: float = 0.0,
    ) -> None:
        self._client = client
        self._browser = browser
        self._settings = settings or get_browser_settings()
        self._delay = request_delay_seconds

    async def assess(self, record: ProgramRecord) -> RepoAssessment:
        """Assess one record; a rate limit propagates so the caller can stop."""

        assessment = RepoAssessment(
            full_name=record.full_name,
            url=record.url,
            stars=record.stars,
            language=record.language,
            updated=record.updated,
        )
        try:
            metadata = await self._client.get_repository(record.owner, record.name)
        except GitHubNotFoundError:
            assessment.flag(
                IssueCategory.REPO_NOT_FOUND,
                "Repository not found (404); it may have been deleted or renamed",
                Severity.HIGH,
            )
            return assessment
        except GitHubAccessDeniedError:
            assessment.flag(IssueCategory.REPO_PRIVATE, "Repository is no longer accessible", Severity.HIGH)
            return assessment
        except GitHubRateLimitError:
            raise
        except GitHubAPIError as exc:
            assessment.flag(IssueCategory.OTHER_ERROR, f"Error checking repository: {exc}", Severity.MEDIUM)
            return assessment

        if metadata.get("private"):
            assessment.flag(IssueCategory.REPO_PRIVATE, "Repository is now private", Severity.HIGH)
            return assessment
        if metadata.get("archived"):
            assessment.flag(IssueCategory.REPO_ARCHIVED, "Repository is archived (read-only)", Severity.LOW)

        default_branch = metadata.get("default_branch") or record.default_branch
        assessment.default_branch = default_branch

        try:
            tree = await self._browser.find_code_files(record.owner, record.name)
        except GitHubRateLimitError:
            raise
        except GitHubAPIError as exc:
            assessment.flag(IssueCategory.OTHER_ERROR, f"Error scanning repository: {exc}", Severity.MEDIUM)
            tree = None
        if tree is not None:
            if tree:
                assessment.code_files_found = len(tree)
                assessment.sample_files = [str(entry.get("path")) for entry in tree[:3]]
            else:
                assessment.flag(
                    IssueCategory.NO_CODE_FILES_FOUND,
                    "No code files found; repository may be empty or use a non-standard structure",
                    Severity.MEDIUM,
                )

        branches = [default_branch, *self._settings.fallback_branches]
        link = await probe_archive(
            self._client, record.owner, record.name, branches, host=self._settings.archive_host
        )
        if link is None:
            tried = ", ".join(dict.fromkeys(branch for branch in branches if branch))
            assessment.flag(
                IssueCategory.ZIP_DOWNLOAD_ISSUE,
                f"ZIP download not working; tried branches: {tried}",
                Severity.LOW,
            )
        else:
            assessment.archive_branch = link.branch
        return assessment

    async def run(self, records: Sequence[ProgramRecord], *, limit: Optional[int] = None) -> QualityReport:
        report = QualityReport(generated_at=utcnow())
        selected = list(records if limit is None else records[:limit])
        for position, record in enumerate(selected, start=1):
            if position > 1 and self._delay:
                await asyncio.sleep(self._delay)
            try:
                assessment = await self.assess(record)
            except GitHubRateLimitError as exc:
                report.halted_reason = "rate_limited"
                report.issue_categories[IssueCategory.RATE_LIMITED] += 1
                _LOGGER.warning(
                    "quality | rate limited; stopping | checked=%s | reset_at=%s", report.checked, exc.reset_at
                )
                break
            report.add(assessment)
            _LOGGER.info(
                "quality | checked | repo=%s | severity=%s | progress=%s/%s",
                record.full_name,
                assessment.severity.value,
                position,
                len(selected),
            )
        return report


def write_report(report: QualityReport, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
    return path


__all__ = [
    "IssueCategory",
    "QualityChecker",
    "QualityReport",
    "RepoAssessment",
    "Severity",
    "write_report",
]
