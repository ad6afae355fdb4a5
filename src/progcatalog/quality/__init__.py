"""Catalog quality auditing."""

from .checker import IssueCategory, QualityChecker, QualityReport, RepoAssessment, Severity, write_report

__all__ = [
    "IssueCategory",
    "QualityChecker",
    "QualityReport",
    "RepoAssessment",
    "Severity",
    "write_report",
]
