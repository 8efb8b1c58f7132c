"""Configuration utilities for the deduplication engine."""

from .policies import (
    DeduplicationPolicy,
    NameNormalizationPolicy,
    Policies,
    QualityThresholds,
    ScoringWeights,
    load_policies,
)
from .settings import PathsConfig, Settings, get_settings

__all__ = [
    "Settings",
    "PathsConfig",
    "get_settings",
    "Policies",
    "load_policies",
    "DeduplicationPolicy",
    "NameNormalizationPolicy",
    "QualityThresholds",
    "ScoringWeights",
]
