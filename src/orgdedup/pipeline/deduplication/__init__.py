"""Deduplication pipeline entry points and public interfaces."""

from .main import deduplicate_file, deduplicate_records
from .processor import DeduplicationProcessor, DeduplicationResult, DuplicateRecordIdError
from .blocking import BucketKey, CandidateBucketer, ComparisonLedger
from .graph import ClusterBuilder, UnionFind
from .similarity import MatchResult, SimilarityScorer
from .merger import EmptyClusterError, MergeOutcome, RecordMerger
from .strategies import ConflictStrategy, UnknownStrategyError, get_strategy

__all__ = [
    "deduplicate_file",
    "deduplicate_records",
    "DeduplicationProcessor",
    "DeduplicationResult",
    "DuplicateRecordIdError",
    "BucketKey",
    "CandidateBucketer",
    "ComparisonLedger",
    "ClusterBuilder",
    "UnionFind",
    "MatchResult",
    "SimilarityScorer",
    "EmptyClusterError",
    "MergeOutcome",
    "RecordMerger",
    "ConflictStrategy",
    "UnknownStrategyError",
    "get_strategy",
]
