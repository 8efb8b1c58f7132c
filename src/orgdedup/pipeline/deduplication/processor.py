"""Deduplication processor orchestrating bucketing, scoring, clustering and merging."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, Iterable, List, Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from orgdedup.config.policies import DeduplicationPolicy
from orgdedup.entities.core import DataConflict, MergeRecord, Organisation, RunWarning
from orgdedup.pipeline.deduplication.blocking import (
    BucketingOutput,
    CandidateBucketer,
    ComparisonLedger,
)
from orgdedup.pipeline.deduplication.graph import ClusterBuilder
from orgdedup.pipeline.deduplication.merger import RecordMerger
from orgdedup.pipeline.deduplication.similarity import MatchResult, SimilarityScorer
from orgdedup.utils.logging import get_logger, log_timing, logging_context
from orgdedup.utils.similarity import SimilarityCache

_LOGGER = get_logger(module=__name__)


class DuplicateRecordIdError(ValueError):
    """Raised when the input contains the same record id more than once."""


class DeduplicationResult(BaseModel):
    """Aggregate result of one deduplication run."""

    original_count: int = Field(..., ge=0)
    deduplicated_count: int = Field(..., ge=0)
    merged_records: List[MergeRecord] = Field(default_factory=list)
    records: List[Organisation] = Field(default_factory=list)
    conflicts: List[DataConflict] = Field(default_factory=list)
    warnings: List[RunWarning] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class RunState:
    """Mutable state owned by a single :meth:`DeduplicationProcessor.process` call."""

    cache: SimilarityCache = field(default_factory=SimilarityCache)
    ledger: ComparisonLedger = field(default_factory=ComparisonLedger)
    warnings: List[RunWarning] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)


class DeduplicationProcessor:
    """Coordinator for the deduplication pipeline.

    The processor itself holds only configuration. Every call to
    :meth:`process` builds its own similarity cache and comparison ledger, so
    one instance can serve concurrent calls on independent inputs.
    """

    def __init__(self, policy: DeduplicationPolicy) -> None:
        self.policy = policy
        self.bucketer = CandidateBucketer(policy)
        self.merger = RecordMerger(policy)

    @staticmethod
    def _check_unique_ids(records: Sequence[Organisation]) -> None:
        counts = Counter(record.id for record in records)
        duplicates = sorted(record_id for record_id, count in counts.items() if count > 1)
        if duplicates:
            raise DuplicateRecordIdError(
                f"Input contains {len(duplicates)} duplicated record id(s): {duplicates[:5]}"
            )

    def _build_buckets(self, records: Sequence[Organisation], state: RunState) -> BucketingOutput:
        output = self.bucketer.build_buckets(records)
        state.warnings.extend(output.warnings)
        state.stats["bucketing"] = {
            "total_buckets": output.metrics.total_buckets,
            "max_bucket_size": output.metrics.max_bucket_size,
            "average_bucket_size": output.metrics.average_bucket_size,
            "bucket_size_distribution": output.metrics.bucket_size_distribution,
            "truncated_buckets": output.metrics.truncated_buckets,
            "records_beyond_cap": output.metrics.records_beyond_cap,
        }
        _LOGGER.debug(
            "Constructed buckets",
            total_buckets=output.metrics.total_buckets,
            max_bucket_size=output.metrics.max_bucket_size,
        )
        return output

    def _score_buckets(
        self,
        buckets: BucketingOutput,
        scorer: SimilarityScorer,
        state: RunState,
    ) -> List[MatchResult]:
        matches: List[MatchResult] = []
        pairs_compared = 0
        below_threshold = 0
        for key, members in buckets.buckets.items():
            if len(members) < 2:
                continue
            plan = self.bucketer.candidate_pairs(key, members, state.ledger)
            if plan.warning is not None:
                state.warnings.append(plan.warning)
            for left, right in plan.pairs:
                pairs_compared += 1
                result = scorer.score_pair(left, right)
                if result.similarity_score >= self.policy.similarity_threshold:
                    matches.append(result)
                else:
                    below_threshold += 1
        state.stats["pairs_compared"] = pairs_compared
        state.stats["matches"] = len(matches)
        state.stats["below_threshold"] = below_threshold
        return matches

    def process(self, records: Iterable[Organisation]) -> DeduplicationResult:
        """Run the deduplication pipeline for the provided records.

        Records that take part in no merge are returned as the same objects;
        merged records are new copies. Output order follows the first input
        position of each cluster.
        """

        records = list(records)
        self._check_unique_ids(records)
        run_id = uuid4().hex[:12]
        with logging_context(run_id=run_id, stage="dedup"):
            start_time = perf_counter()
            _LOGGER.info("Deduplication run started", total_records=len(records))

            state = RunState()
            scorer = SimilarityScorer(self.policy, state.cache)
            buckets = self._build_buckets(records, state)
            with log_timing("score_buckets", logger_=_LOGGER):
                matches = self._score_buckets(buckets, scorer, state)

            builder = ClusterBuilder()
            clusters = builder.build(records, matches)
            state.stats["clusters"] = builder.stats()

            output_records: List[Organisation] = []
            merge_records: List[MergeRecord] = []
            conflicts: List[DataConflict] = []
            for cluster in clusters:
                outcome = self.merger.merge(cluster)
                output_records.append(outcome.merged)
                if not outcome.is_merge:
                    continue
                conflicts.extend(outcome.conflicts)
                merge_records.append(
                    MergeRecord(
                        merged_ids=outcome.member_ids,
                        resulting_id=outcome.merged.id,
                        confidence=outcome.confidence,
                        strategy=self.merger.strategy.name,
                    )
                )

            state.stats["cache"] = state.cache.stats()
            state.stats["merges"] = len(merge_records)
            elapsed_seconds = perf_counter() - start_time
            state.stats["timing"] = {"elapsed_seconds": elapsed_seconds}

            result = DeduplicationResult(
                original_count=len(records),
                deduplicated_count=len(output_records),
                merged_records=merge_records,
                records=output_records,
                conflicts=conflicts,
                warnings=state.warnings,
                stats=state.stats,
            )
            _LOGGER.info(
                "Deduplication run finished",
                total_records=len(records),
                remaining=len(output_records),
                merges=len(merge_records),
                conflicts=len(conflicts),
                warnings=len(state.warnings),
                pairs_compared=state.stats["pairs_compared"],
                elapsed_seconds=elapsed_seconds,
            )
            return result


__all__ = ["DeduplicationProcessor", "DeduplicationResult", "DuplicateRecordIdError", "RunState"]
