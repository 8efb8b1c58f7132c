"""Candidate bucketing used to bound pairwise comparisons."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Sequence, Set, Tuple

from orgdedup.config.policies import DeduplicationPolicy
from orgdedup.entities.core import Organisation, RunWarning
from orgdedup.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)
UNKNOWN_CLASSIFICATION = "unknown"


class BucketKey(NamedTuple):
    kind: str
    classification: str

    @classmethod
    def for_record(cls, record: Organisation) -> "BucketKey":
        return cls(record.kind, record.classification or UNKNOWN_CLASSIFICATION)

    @property
    def label(self) -> str:
        return f"{self.kind}|{self.classification}"


@dataclass
class BucketingMetrics:
    """Aggregate statistics describing bucket creation."""

    total_buckets: int = 0
    max_bucket_size: int = 0
    average_bucket_size: float = 0.0
    bucket_size_distribution: Dict[int, int] = field(default_factory=dict)
    truncated_buckets: int = 0
    records_beyond_cap: int = 0


@dataclass
class BucketingOutput:
    """Return value for :meth:`CandidateBucketer.build_buckets`."""

    buckets: Dict[BucketKey, List[Organisation]]
    metrics: BucketingMetrics
    warnings: List[RunWarning] = field(default_factory=list)


@dataclass
class PairPlan:
    """Pairs selected for scoring within one bucket."""

    pairs: List[Tuple[Organisation, Organisation]]
    capped_records: int = 0
    warning: RunWarning | None = None


class ComparisonLedger:
    """Run-scoped record of id pairs that have already been compared."""

    def __init__(self) -> None:
        self._seen: Set[Tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def check_and_mark(self, first_id: str, second_id: str) -> bool:
        """Return ``True`` the first time an unordered pair is seen."""

        key = (first_id, second_id) if first_id <= second_id else (second_id, first_id)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True


class CandidateBucketer:
    """Partition records by ``(kind, classification)`` and apply comparison caps."""

    def __init__(self, policy: DeduplicationPolicy) -> None:
        self.policy = policy

    def _limit_bucket(
        self, key: BucketKey, members: List[Organisation]
    ) -> Tuple[List[Organisation], RunWarning | None]:
        if self.policy.sort_buckets_by_id:
            members = sorted(members, key=lambda record: record.id)
        cap = self.policy.max_bucket_size
        if len(members) <= cap:
            return members, None

        skipped = len(members) - cap
        warning = RunWarning(
            code="bucket_truncated",
            bucket=key.label,
            message=(
                f"Bucket {key.label} has {len(members)} records; only the first {cap} "
                f"were compared and {skipped} pass through without matching"
            ),
            affected=skipped,
        )
        _LOGGER.warning(
            "Truncated oversized bucket",
            bucket=key.label,
            size=len(members),
            cap=cap,
            skipped=skipped,
        )
        return members[:cap], warning

    def build_buckets(self, records: Sequence[Organisation]) -> BucketingOutput:
        grouped: Dict[BucketKey, List[Organisation]] = defaultdict(list)
        for record in records:
            grouped[BucketKey.for_record(record)].append(record)

        buckets: Dict[BucketKey, List[Organisation]] = {}
        warnings: List[RunWarning] = []
        metrics = BucketingMetrics()
        sizes: List[int] = []
        for key in sorted(grouped):
            members = grouped[key]
            sizes.append(len(members))
            limited, warning = self._limit_bucket(key, members)
            if warning is not None:
                warnings.append(warning)
                metrics.truncated_buckets += 1
                metrics.records_beyond_cap += warning.affected
            buckets[key] = limited

        metrics.total_buckets = len(buckets)
        if sizes:
            metrics.max_bucket_size = max(sizes)
            metrics.average_bucket_size = sum(sizes) / len(sizes)
            distribution: Dict[int, int] = defaultdict(int)
            for size in sizes:
                distribution[size] += 1
            metrics.bucket_size_distribution = dict(sorted(distribution.items()))

        return BucketingOutput(buckets=buckets, metrics=metrics, warnings=warnings)

    def candidate_pairs(
        self,
        key: BucketKey,
        members: Sequence[Organisation],
        ledger: ComparisonLedger,
    ) -> PairPlan:
        """Enumerate pairs inside a bucket, capping partners per left-hand record.

        Pairs already present in ``ledger`` are skipped and do not count towards
        the per-record cap.
        """

        cap = self.policy.max_comparisons_per_record
        pairs: List[Tuple[Organisation, Organisation]] = []
        capped = 0
        for index, left in enumerate(members):
            compared = 0
            for right in members[index + 1 :]:
                if compared >= cap:
                    capped += 1
                    break
                if not ledger.check_and_mark(left.id, right.id):
                    continue
                pairs.append((left, right))
                compared += 1

        warning = None
        if capped:
            warning = RunWarning(
                code="comparison_cap",
                bucket=key.label,
                message=(
                    f"{capped} record(s) in bucket {key.label} reached the limit of "
                    f"{cap} comparisons"
                ),
                affected=capped,
            )
            _LOGGER.warning(
                "Comparison cap reached",
                bucket=key.label,
                records=capped,
                cap=cap,
            )
        return PairPlan(pairs=pairs, capped_records=capped, warning=warning)


__all__ = [
    "BucketKey",
    "BucketingMetrics",
    "BucketingOutput",
    "CandidateBucketer",
    "ComparisonLedger",
    "PairPlan",
]
