"""First-match keyword classifier for catalog records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..models import ProgramRecord
from .rules import CATEGORY_RULES, DEFAULT_CATEGORY, SUB_CATEGORY_RULES, KeywordRule


@dataclass(frozen=True, slots=True)
class Classification:
    category: str
    sub_category: str


def classification_text(name: Optional[str], description: Optional[str], topics: Iterable[str] | None) -> str:
    """Concatenate the fields keyword rules are matched against."""

    topic_text = " ".join(topic for topic in (topics or ()) if topic)
    return f"{name or ''} {description or ''} {topic_text}".lower()


class Classifier:
    """Assign a category and sub-category using ordered keyword rules.

    Ties are broken purely by rule order: a text matching several rules gets
    the label of the earliest one. When no sub-category rule matches, the
    sub-category falls back to the primary category.
    """

    def __init__(
        self,
        category_rules: Sequence[KeywordRule] = CATEGORY_RULES,
        sub_category_rules: Sequence[KeywordRule] = SUB_CATEGORY_RULES,
        *,
        default_category: str = DEFAULT_CATEGORY.value,
    ) -> None:
        self._category_rules = tuple(category_rules)
        self._sub_category_rules = tuple(sub_category_rules)
        self._default_category = str(default_category)

    @property
    def default_category(self) -> str:
        return self._default_category

    def categorize_text(self, text: str) -> str:
        return _first_match(self._category_rules, text) or self._default_category

    def classify(
        self,
        name: Optional[str],
        description: Optional[str],
        topics: Iterable[str] | None = None,
    ) -> Classification:
        text = classification_text(name, description, topics)
        category = self.categorize_text(text)
        sub_category = _first_match(self._sub_category_rules, text) or category
        return Classification(category=category, sub_category=sub_category)

    def classify_record(self, record: ProgramRecord) -> Classification:
        return self.classify(record.name, record.description, record.topics)


def _first_match(rules: Sequence[KeywordRule], text: str) -> Optional[str]:
    for rule in rules:
        if rule.matches(text):
            return rule.label
    return None


DEFAULT_CLASSIFIER = Classifier()


def classify_record(record: ProgramRecord, classifier: Optional[Classifier] = None) -> Classification:
    """Classify ``record`` with ``classifier`` (the default rule tables when omitted)."""

    return (classifier or DEFAULT_CLASSIFIER).classify_record(record)


def effective_category(record: ProgramRecord, classifier: Optional[Classifier] = None) -> str:
    """Return the stored category, classifying on the fly when none is stored."""

    if record.category:
        return record.category
    return classify_record(record, classifier).category


__all__ = [
    "Classification",
    "Classifier",
    "DEFAULT_CLASSIFIER",
    "classification_text",
    "classify_record",
    "effective_category",
]
