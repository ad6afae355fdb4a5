"""Keyword-based categorisation of catalogued repositories."""

from .classifier import (
    DEFAULT_CLASSIFIER,
    Classification,
    Classifier,
    classification_text,
    classify_record,
    effective_category,
)
from .rules import (
    ALL_CATEGORIES,
    CATEGORY_RULES,
    DEFAULT_CATEGORY,
    SUB_CATEGORY_RULES,
    Category,
    KeywordRule,
)

__all__ = [
    "ALL_CATEGORIES",
    "CATEGORY_RULES",
    "Category",
    "Classification",
    "Classifier",
    "DEFAULT_CATEGORY",
    "DEFAULT_CLASSIFIER",
    "KeywordRule",
    "SUB_CATEGORY_RULES",
    "classification_text",
    "classify_record",
    "effective_category",
]
