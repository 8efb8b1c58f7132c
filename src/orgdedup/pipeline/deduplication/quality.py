"""Completeness, review flags and confidence for merged records."""

from __future__ import annotations

from typing import Any, List, Sequence

from orgdedup.config.policies import QualityThresholds
from orgdedup.entities.core import DataConflict, DataQuality, DataSourceReference, Organisation

TRACKED_FIELDS: tuple[str, ...] = (
    "name",
    "alternative_names",
    "kind",
    "classification",
    "parent_organisation",
    "controlling_unit",
    "status",
    "establishment_date",
    "dissolution_date",
    "location",
)


def is_populated(value: Any) -> bool:
    """Treat ``None``, blank strings and empty collections as absent."""

    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return bool(value)
    return True


def compute_completeness(record: Organisation) -> float:
    populated = sum(1 for name in TRACKED_FIELDS if is_populated(getattr(record, name)))
    return populated / len(TRACKED_FIELDS)


def assess_data_quality(
    record: Organisation,
    conflicts: Sequence[DataConflict],
    thresholds: QualityThresholds,
    *,
    manual_resolution: bool = False,
) -> DataQuality:
    """Build a fresh quality assessment for ``record``."""

    completeness = compute_completeness(record)
    reasons: List[str] = []
    conflict_fields = [conflict.field for conflict in conflicts]
    if conflicts:
        reasons.append(f"Conflicting values for: {', '.join(conflict_fields)}")
    if completeness < thresholds.min_completeness:
        reasons.append(
            f"Completeness {completeness:.2f} below threshold {thresholds.min_completeness:.2f}"
        )
    if manual_resolution:
        reasons.append("Merged with the manual strategy; base record and values need confirmation")
    return DataQuality(
        completeness=completeness,
        has_conflicts=bool(conflicts),
        conflict_fields=conflict_fields,
        requires_review=bool(reasons),
        review_reasons=reasons,
    )


def merge_confidence(
    sources: Sequence[DataSourceReference],
    conflict_count: int,
    cluster_size: int,
    thresholds: QualityThresholds,
) -> float:
    """Mean source confidence, penalised per conflict and boosted for corroborated clusters."""

    if not sources:
        return 0.0
    confidence = sum(source.confidence for source in sources) / len(sources)
    confidence -= min(thresholds.conflict_penalty * conflict_count, thresholds.max_conflict_penalty)
    if cluster_size >= thresholds.corroboration_min_cluster_size:
        confidence += thresholds.corroboration_bonus
    return max(0.0, min(1.0, confidence))


__all__ = [
    "TRACKED_FIELDS",
    "assess_data_quality",
    "compute_completeness",
    "is_populated",
    "merge_confidence",
]
