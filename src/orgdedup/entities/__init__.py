"""Domain entities for organisation records and deduplication outputs."""

from .core import (
    ConflictResolution,
    ConflictValue,
    DataConflict,
    DataQuality,
    DataSourceReference,
    MergeRecord,
    Organisation,
    OrganisationLocation,
    OrganisationStatus,
    RunWarning,
)

__all__ = [
    "ConflictResolution",
    "ConflictValue",
    "DataConflict",
    "DataQuality",
    "DataSourceReference",
    "MergeRecord",
    "Organisation",
    "OrganisationLocation",
    "OrganisationStatus",
    "RunWarning",
]
