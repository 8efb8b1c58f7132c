"""Merge clusters of duplicate organisation records into one canonical record."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple
from uuid import uuid4

from orgdedup.config.policies import DeduplicationPolicy
from orgdedup.entities.core import (
    ConflictResolution,
    ConflictValue,
    DataConflict,
    DataSourceReference,
    Organisation,
)
from orgdedup.utils.helpers import structural_key, utc_now
from orgdedup.utils.logging import get_logger

from .quality import TRACKED_FIELDS, assess_data_quality, is_populated, merge_confidence
from .strategies import ConflictStrategy, FieldValue, get_strategy

_LOGGER = get_logger(module=__name__)


def _conflict_key(field_name: str, value: Any) -> str:
    # alternative_names is a set; member order never makes a conflict.
    if field_name == "alternative_names":
        value = sorted(set(value))
    return structural_key(value)


class EmptyClusterError(ValueError):
    """Raised when asked to merge a cluster without members."""


@dataclass
class MergeOutcome:
    """Represents the result of merging one cluster."""

    merged: Organisation
    confidence: float
    conflicts: List[DataConflict] = field(default_factory=list)
    member_ids: List[str] = field(default_factory=list)

    @property
    def is_merge(self) -> bool:
        return len(self.member_ids) > 1


class RecordMerger:
    """Apply a conflict strategy to produce merged records from clusters."""

    def __init__(
        self,
        policy: DeduplicationPolicy,
        strategy: ConflictStrategy | None = None,
    ) -> None:
        self.policy = policy
        self.strategy = strategy or get_strategy(policy.conflict_resolution_strategy)

    @staticmethod
    def _merge_sources(cluster: Sequence[Organisation]) -> List[DataSourceReference]:
        merged: Dict[Tuple[str, str], DataSourceReference] = {}
        for member in cluster:
            for source in member.sources:
                key = source.identity()
                existing = merged.get(key)
                if existing is None or source.confidence > existing.confidence:
                    merged[key] = source.model_copy(deep=True)
        return list(merged.values())

    def _detect_conflict(
        self,
        merged: Organisation,
        field_name: str,
        cluster: Sequence[Organisation],
    ) -> DataConflict | None:
        values = [
            FieldValue(record=member, value=getattr(member, field_name))
            for member in cluster
            if is_populated(getattr(member, field_name))
        ]
        if len(values) < 2:
            return None
        if len({_conflict_key(field_name, item.value) for item in values}) < 2:
            return None

        resolved = self.strategy.resolve(values)
        setattr(merged, field_name, copy.deepcopy(resolved))
        return DataConflict(
            organisation_id=merged.id,
            field=field_name,
            values=[
                ConflictValue(
                    source=item.record.sources[0].source,
                    value=copy.deepcopy(item.value),
                    retrieved_at=item.record.sources[0].retrieved_at,
                )
                for item in values
            ],
            resolution=ConflictResolution(
                resolved_value=copy.deepcopy(resolved),
                strategy=self.strategy.name,
                reason=self.strategy.describe(),
            ),
        )

    @staticmethod
    def _merge_aliases(merged: Organisation, cluster: Sequence[Organisation]) -> List[str]:
        aliases: List[str] = []
        seen = {merged.name}
        candidates: List[str] = list(merged.alternative_names)
        for member in cluster:
            candidates.extend(member.alternative_names)
            candidates.append(member.name)
        for alias in candidates:
            if alias in seen:
                continue
            seen.add(alias)
            aliases.append(alias)
        return aliases

    @staticmethod
    def _merge_properties(cluster: Sequence[Organisation]) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        for member in cluster:
            properties.update(copy.deepcopy(member.additional_properties))
        return properties

    def merge(self, cluster: Sequence[Organisation]) -> MergeOutcome:
        if not cluster:
            raise EmptyClusterError("cannot merge an empty cluster")
        member_ids = [member.id for member in cluster]
        if len(cluster) == 1:
            return MergeOutcome(merged=cluster[0], confidence=1.0, member_ids=member_ids)

        base = self.strategy.select_base(cluster)
        merged = base.model_copy(deep=True)
        if self.policy.track_provenance:
            merged.id = str(uuid4())
        merged.sources = self._merge_sources(cluster)

        conflicts: List[DataConflict] = []
        for field_name in TRACKED_FIELDS:
            conflict = self._detect_conflict(merged, field_name, cluster)
            if conflict is not None:
                conflicts.append(conflict)

        merged.alternative_names = self._merge_aliases(merged, cluster)
        merged.additional_properties = self._merge_properties(cluster)
        merged.data_quality = assess_data_quality(
            merged,
            conflicts,
            self.policy.quality,
            manual_resolution=self.strategy.requires_review,
        )
        confidence = merge_confidence(
            [source for member in cluster for source in member.sources],
            len(conflicts),
            len(cluster),
            self.policy.quality,
        )
        merged.last_updated = utc_now()

        _LOGGER.debug(
            "Merged cluster",
            base=base.id,
            resulting_id=merged.id,
            members=member_ids,
            conflicts=[conflict.field for conflict in conflicts],
            confidence=confidence,
        )
        return MergeOutcome(
            merged=merged,
            confidence=confidence,
            conflicts=conflicts,
            member_ids=member_ids,
        )


__all__ = ["EmptyClusterError", "MergeOutcome", "RecordMerger"]
