"""Utility helpers shared across orgdedup modules."""

from .helpers import (
    ensure_utc,
    fold_diacritics,
    structural_key,
    utc_now,
)
from .logging import configure_logging, get_logger, log_timing, logging_context
from .similarity import (
    NameNormalizer,
    SimilarityCache,
    StringSimilarity,
    levenshtein_similarity,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_timing",
    "logging_context",
    "ensure_utc",
    "fold_diacritics",
    "structural_key",
    "utc_now",
    "NameNormalizer",
    "SimilarityCache",
    "StringSimilarity",
    "levenshtein_similarity",
]
