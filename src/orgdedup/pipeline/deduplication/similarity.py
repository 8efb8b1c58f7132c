"""Pairwise similarity scoring for organisation records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from orgdedup.config.policies import DeduplicationPolicy
from orgdedup.entities.core import Organisation
from orgdedup.utils.logging import get_logger
from orgdedup.utils.similarity import NameNormalizer, SimilarityCache, StringSimilarity

from .quality import is_populated

_LOGGER = get_logger(module=__name__)

FieldAccessor = Callable[[Organisation], Any]


def _location_address(record: Organisation) -> str | None:
    return record.location.address if record.location else None


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


_RECORD_ACCESSORS: Dict[str, FieldAccessor] = {
    "id": lambda record: record.id,
    "name": lambda record: record.name,
    "alternative_names": lambda record: record.alternative_names,
    "kind": lambda record: record.kind,
    "classification": lambda record: record.classification,
    "parent_organisation": lambda record: record.parent_organisation,
    "controlling_unit": lambda record: record.controlling_unit,
    "status": lambda record: record.status.value,
    "establishment_date": lambda record: _iso(record.establishment_date),
    "dissolution_date": lambda record: _iso(record.dissolution_date),
    "location": _location_address,
    "address": _location_address,
    "region": lambda record: record.location.region if record.location else None,
    "country": lambda record: record.location.country if record.location else None,
}


def build_accessor(field_name: str) -> FieldAccessor:
    """Resolve a configured field name to a getter.

    Names outside the common schema are looked up in ``additional_properties``.
    """

    accessor = _RECORD_ACCESSORS.get(field_name)
    if accessor is not None:
        return accessor
    return lambda record: record.additional_properties.get(field_name)


@dataclass
class MatchResult:
    """Outcome of comparing two records."""

    left_id: str
    right_id: str
    similarity_score: float
    matched_fields: List[str] = field(default_factory=list)
    conflicting_fields: List[str] = field(default_factory=list)
    is_exact_match: bool = False


class SimilarityScorer:
    """Compute a symmetric weighted similarity between organisation records."""

    def __init__(self, policy: DeduplicationPolicy, cache: SimilarityCache | None = None) -> None:
        self.policy = policy
        self.weights = policy.scoring
        self.strings = StringSimilarity(
            NameNormalizer.from_policy(policy.name_normalization),
            cache,
            length_ratio_cutoff=self.weights.length_ratio_cutoff,
        )
        self._exact_fields = [(name, build_accessor(name)) for name in policy.exact_match_fields]
        self._fuzzy_fields = [(name, build_accessor(name)) for name in policy.fuzzy_match_fields]

    @property
    def cache(self) -> SimilarityCache:
        return self.strings.cache

    def name_similarity(self, left: Organisation, right: Organisation) -> float:
        return self.strings.compare(left.name, right.name)

    def _alias_matches(self, aliases: List[str], name: str) -> bool:
        return any(
            self.strings.compare(alias, name) >= self.weights.alias_match_threshold
            for alias in aliases
        )

    def score_pair(self, left: Organisation, right: Organisation) -> MatchResult:
        result = MatchResult(left_id=left.id, right_id=right.id, similarity_score=0.0)

        if left.kind != right.kind and left.classification != right.classification:
            return result

        name_score = self.name_similarity(left, right)
        if name_score < self.weights.name_prefilter_cutoff:
            result.similarity_score = name_score
            return result

        total = 0.0
        maximum = 0.0
        exact_hit = False

        for field_name, accessor in self._exact_fields:
            maximum += 1.0
            value_left = accessor(left)
            value_right = accessor(right)
            if is_populated(value_left) and is_populated(value_right) and value_left == value_right:
                total += 1.0
                result.matched_fields.append(field_name)
                exact_hit = True

        for field_name, accessor in self._fuzzy_fields:
            maximum += 1.0
            value_left = accessor(left)
            value_right = accessor(right)
            if not (is_populated(value_left) and is_populated(value_right)):
                continue
            score = self.strings.compare_values(value_left, value_right)
            if score >= self.weights.fuzzy_match_threshold:
                total += score
                result.matched_fields.append(field_name)
            elif score > self.weights.fuzzy_conflict_floor:
                result.conflicting_fields.append(field_name)

        alias_hits = 0
        if self._alias_matches(left.alternative_names, right.name):
            alias_hits += 1
        if self._alias_matches(right.alternative_names, left.name):
            alias_hits += 1
        if alias_hits:
            total += self.weights.alias_bonus * alias_hits
            if "alternative_names" not in result.matched_fields:
                result.matched_fields.append("alternative_names")

        if left.parent_organisation and right.parent_organisation:
            maximum += self.weights.parent_weight
            if left.parent_organisation == right.parent_organisation:
                total += self.weights.parent_weight
                result.matched_fields.append("parent_organisation")
            else:
                result.conflicting_fields.append("parent_organisation")

        if left.classification and right.classification and left.classification == right.classification:
            maximum += self.weights.classification_weight
            total += self.weights.classification_weight
            result.matched_fields.append("classification")

        result.similarity_score = min(total / maximum, 1.0) if maximum > 0 else 0.0
        result.is_exact_match = exact_hit or (
            "name" in result.matched_fields
            and result.similarity_score >= self.weights.exact_name_threshold
        )
        _LOGGER.debug(
            "Evaluated similarity",
            left=left.id,
            right=right.id,
            score=result.similarity_score,
            matched=result.matched_fields,
            conflicting=result.conflicting_fields,
            exact=result.is_exact_match,
        )
        return result


__all__ = ["MatchResult", "SimilarityScorer", "build_accessor"]
