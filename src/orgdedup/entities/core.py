"""Core domain entities describing organisation records and merge outputs."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from ..utils.helpers import ensure_utc, utc_now


class DataSourceReference(BaseModel):
    """Attribution of a record (or merged value) to one upstream source."""

    source: str = Field(..., min_length=1, description="Source identifier, e.g. gov_uk_api")
    source_id: str | None = Field(
        default=None,
        description="Identifier of the record inside its source, if the source provides one.",
    )
    retrieved_at: datetime = Field(default_factory=utc_now)
    url: str | None = Field(default=None)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @field_validator("source")
    @classmethod
    def _strip_source(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("source must contain non-whitespace characters")
        return cleaned

    @field_validator("retrieved_at")
    @classmethod
    def _normalize_retrieved_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def identity(self) -> tuple[str, str]:
        """Key used to collapse duplicate attributions during a merge."""

        return (self.source, self.source_id or "unknown")


class DataQuality(BaseModel):
    """Quality assessment attached to every organisation record."""

    completeness: float = Field(default=0.0, ge=0.0, le=1.0)
    has_conflicts: bool = Field(default=False)
    conflict_fields: List[str] = Field(default_factory=list)
    requires_review: bool = Field(default=False)
    review_reasons: List[str] = Field(default_factory=list)


class OrganisationLocation(BaseModel):
    address: str | None = None
    region: str | None = None
    country: str | None = None


class OrganisationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISSOLVED = "dissolved"


class Organisation(BaseModel):
    """One record describing a public-sector organisation as reported by its sources."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=500)
    alternative_names: List[str] = Field(default_factory=list)
    kind: str = Field(
        default="other",
        min_length=1,
        description="Organisation type, e.g. ministerial_department or executive_agency.",
    )
    classification: str | None = Field(default=None)
    parent_organisation: str | None = Field(default=None)
    controlling_unit: str | None = Field(default=None)
    status: OrganisationStatus = Field(default=OrganisationStatus.ACTIVE)
    establishment_date: date | None = Field(default=None)
    dissolution_date: date | None = Field(default=None)
    location: OrganisationLocation | None = Field(default=None)
    sources: List[DataSourceReference] = Field(..., min_length=1)
    data_quality: DataQuality = Field(default_factory=DataQuality)
    last_updated: datetime = Field(default_factory=utc_now)
    additional_properties: Dict[str, Any] = Field(
        default_factory=dict,
        description="Source-specific attributes with no dedicated field, e.g. ons_code.",
    )

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name must contain non-whitespace characters")
        return cleaned

    @field_validator("alternative_names")
    @classmethod
    def _drop_blank_aliases(cls, value: List[str]) -> List[str]:
        return [alias.strip() for alias in value if alias and alias.strip()]

    @field_validator("kind")
    @classmethod
    def _normalize_kind(cls, value: str) -> str:
        return value.strip() or "other"

    @field_validator("last_updated")
    @classmethod
    def _normalize_last_updated(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def best_source_confidence(self) -> float:
        return max(source.confidence for source in self.sources)


class ConflictValue(BaseModel):
    """A single competing value for a field, attributed to its source."""

    source: str = Field(..., min_length=1)
    value: Any
    retrieved_at: datetime

    @field_validator("retrieved_at")
    @classmethod
    def _normalize_retrieved_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ConflictResolution(BaseModel):
    """How a conflict was settled when the merged record was produced."""

    resolved_value: Any
    strategy: str = Field(..., min_length=1)
    resolved_at: datetime = Field(default_factory=utc_now)
    reason: str | None = Field(default=None)


class DataConflict(BaseModel):
    """Irreconcilable difference detected for one field of a merged record."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    organisation_id: str = Field(..., min_length=1)
    field: str = Field(..., min_length=1)
    values: List[ConflictValue] = Field(..., min_length=2)
    resolution: ConflictResolution | None = Field(default=None)


class MergeRecord(BaseModel):
    """Audit entry describing one merge of duplicate records."""

    operation_id: str = Field(default_factory=lambda: str(uuid4()))
    merged_ids: List[str] = Field(..., min_length=2)
    resulting_id: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)
    strategy: str = Field(..., min_length=1)
    performed_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _validate_merge(self) -> "MergeRecord":
        if len(set(self.merged_ids)) != len(self.merged_ids):
            raise ValueError("merge records must reference unique record ids")
        return self


class RunWarning(BaseModel):
    """Capacity trade-off taken during a run (records skipped or comparisons capped)."""

    code: Literal["bucket_truncated", "comparison_cap"]
    bucket: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    affected: int = Field(default=0, ge=0)


__all__ = [
    "DataSourceReference",
    "DataQuality",
    "OrganisationLocation",
    "OrganisationStatus",
    "Organisation",
    "ConflictValue",
    "ConflictResolution",
    "DataConflict",
    "MergeRecord",
    "RunWarning",
]
