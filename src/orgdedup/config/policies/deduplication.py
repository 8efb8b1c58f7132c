"""Deduplication and merge policy models."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_core import PydanticUndefined

StrategyName = Literal["newest", "highest_confidence", "most_complete", "manual"]


def _sanitize_string_sequence(value: Any) -> List[str]:
    """Normalise diverse inputs into a trimmed list of strings."""

    if value is None or value is PydanticUndefined:
        return []
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray)):
        items = list(value)
    else:
        items = [value]

    cleaned: List[str] = []
    for item in items:
        if not isinstance(item, str):
            raise TypeError("Expected string entries, but received non-string input")
        stripped = item.strip()
        if stripped:
            cleaned.append(stripped)
    return cleaned


class ScoringWeights(BaseModel):
    """Cut-offs and weights used by the pairwise similarity scorer."""

    name_prefilter_cutoff: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Name similarity below which a pair is rejected before field scoring.",
    )
    fuzzy_match_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Minimum fuzzy similarity for a field to count as matched.",
    )
    fuzzy_conflict_floor: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Fuzzy similarity above which a non-matching field is reported as conflicting.",
    )
    alias_match_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    alias_bonus: float = Field(
        default=0.5,
        ge=0.0,
        description="Score added when an alternative name matches the other record's name.",
    )
    parent_weight: float = Field(default=0.5, ge=0.0)
    classification_weight: float = Field(default=0.3, ge=0.0)
    exact_name_threshold: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Overall score at which a matched name marks the pair as an exact match.",
    )
    length_ratio_cutoff: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Relative length difference beyond which strings score 0 without edit distance.",
    )

    @model_validator(mode="after")
    def _validate_bands(self) -> "ScoringWeights":
        if self.fuzzy_conflict_floor > self.fuzzy_match_threshold:
            raise ValueError("fuzzy_conflict_floor must not exceed fuzzy_match_threshold")
        return self


class NameNormalizationPolicy(BaseModel):
    """Controls how organisation names are reduced before comparison."""

    enabled: bool = Field(
        default=True,
        description="Apply token replacements and common-word removal; when False only case and punctuation are stripped.",
    )
    replacements: Dict[str, str] = Field(
        default_factory=lambda: {
            "&": "and",
            "dept": "department",
            "org": "organisation",
            "assoc": "association",
            "comm": "commission",
            "corp": "corporation",
            "ltd": "limited",
            "plc": "public limited company",
        }
    )
    remove_common_words: List[str] = Field(
        default_factory=lambda: ["the", "of", "and", "for", "uk", "british"]
    )

    @field_validator("remove_common_words", mode="before")
    def _normalize_common_words(cls, value: Any) -> List[str]:
        return [item.lower() for item in _sanitize_string_sequence(value)]

    @field_validator("replacements", mode="before")
    def _normalize_replacements(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise TypeError("replacements must be a mapping of token to expansion")
        cleaned: Dict[str, str] = {}
        for key, expansion in value.items():
            if not isinstance(key, str) or not isinstance(expansion, str):
                raise TypeError("replacement entries must be strings")
            token = key.strip().lower()
            if token:
                cleaned[token] = expansion.strip().lower()
        return cleaned


class QualityThresholds(BaseModel):
    """Thresholds feeding the post-merge quality assessment and confidence."""

    min_completeness: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Completeness below which a merged record is flagged for review.",
    )
    conflict_penalty: float = Field(default=0.1, ge=0.0, le=1.0)
    max_conflict_penalty: float = Field(default=0.3, ge=0.0, le=1.0)
    corroboration_bonus: float = Field(default=0.1, ge=0.0, le=1.0)
    corroboration_min_cluster_size: int = Field(
        default=3,
        ge=2,
        description="Cluster size from which the corroboration bonus applies.",
    )


class DeduplicationPolicy(BaseModel):
    """Policy governing matching, bucketing and merge behaviour for organisations."""

    similarity_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Minimum pair score required to link two records.",
    )
    exact_match_fields: List[str] = Field(
        default_factory=list,
        description="Fields compared for strict equality, e.g. an external register code.",
    )
    fuzzy_match_fields: List[str] = Field(
        default_factory=lambda: ["name"],
        description=(
            "Fields compared with normalised edit-distance similarity. Every listed field adds 1 "
            "to the score maximum even when absent, so alternative_names is left to the alias bonus."
        ),
    )
    conflict_resolution_strategy: StrategyName = Field(default="most_complete")
    track_provenance: bool = Field(
        default=True,
        description="Assign merged records a fresh identifier instead of reusing the base id.",
    )
    max_bucket_size: int = Field(
        default=100,
        ge=1,
        description="Maximum number of members compared within one candidate bucket.",
    )
    max_comparisons_per_record: int = Field(
        default=50,
        ge=1,
        description="Maximum number of partners evaluated for each record within a bucket.",
    )
    sort_buckets_by_id: bool = Field(
        default=True,
        description="Order bucket members by id before truncation so results do not depend on input order.",
    )
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    name_normalization: NameNormalizationPolicy = Field(
        default_factory=NameNormalizationPolicy
    )
    quality: QualityThresholds = Field(default_factory=QualityThresholds)

    @field_validator("exact_match_fields", "fuzzy_match_fields", mode="before")
    def _strip_fields(cls, value: Any) -> List[str]:
        return _sanitize_string_sequence(value)


__all__ = [
    "DeduplicationPolicy",
    "NameNormalizationPolicy",
    "QualityThresholds",
    "ScoringWeights",
    "StrategyName",
]
