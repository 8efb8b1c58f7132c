"""Processing pipelines for organisation records."""

from .deduplication import DeduplicationProcessor, DeduplicationResult, deduplicate_records

__all__ = ["DeduplicationProcessor", "DeduplicationResult", "deduplicate_records"]
