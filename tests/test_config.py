"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from orgdedup.config.policies import DeduplicationPolicy, Policies, load_policies
from orgdedup.config.settings import DEFAULT_CONFIG_DIR, Settings


@pytest.fixture
def minimal_policy_dict() -> dict:
    return {
        "policy_version": "test-version",
        "deduplication": {
            "similarity_threshold": 0.85,
            "exact_match_fields": ["ons_code", "  "],
            "conflict_resolution_strategy": "newest",
            "scoring": {"alias_bonus": 0.4},
        },
    }


def test_load_policies_from_dict(minimal_policy_dict: dict) -> None:
    policies = load_policies(minimal_policy_dict)
    assert isinstance(policies, Policies)
    dedup = policies.deduplication
    assert dedup.similarity_threshold == 0.85
    assert dedup.exact_match_fields == ["ons_code"]
    assert dedup.fuzzy_match_fields == ["name"]
    assert dedup.scoring.alias_bonus == 0.4
    assert dedup.scoring.name_prefilter_cutoff == 0.3
    assert minimal_policy_dict["deduplication"]["exact_match_fields"] == ["ons_code", "  "]


def test_load_policies_from_yaml(tmp_path: Path, minimal_policy_dict: dict) -> None:
    path = tmp_path / "policies.yaml"
    path.write_text(yaml.safe_dump(minimal_policy_dict), encoding="utf-8")
    assert load_policies(path).policy_version == "test-version"
    with pytest.raises(FileNotFoundError):
        load_policies(tmp_path / "missing.yaml")


def test_policy_env_override(monkeypatch: pytest.MonkeyPatch, minimal_policy_dict: dict) -> None:
    monkeypatch.setenv("ORGDEDUP_POLICY__DEDUPLICATION__SIMILARITY_THRESHOLD", "0.95")
    monkeypatch.setenv("ORGDEDUP_POLICY__DEDUPLICATION__FUZZY_MATCH_FIELDS", '["name", "address"]')
    policies = load_policies(minimal_policy_dict)
    assert policies.deduplication.similarity_threshold == 0.95
    assert policies.deduplication.fuzzy_match_fields == ["name", "address"]


def test_policy_env_override_through_scalar_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORGDEDUP_POLICY__POLICY_VERSION__NESTED", "1")
    with pytest.raises(ValueError):
        load_policies({"policy_version": "v1"})


@pytest.mark.parametrize(
    "overrides",
    [
        {"similarity_threshold": 1.2},
        {"conflict_resolution_strategy": "coin_flip"},
        {"max_bucket_size": 0},
        {"max_comparisons_per_record": 0},
        {"scoring": {"fuzzy_conflict_floor": 0.9, "fuzzy_match_threshold": 0.8}},
    ],
)
def test_invalid_policy_values_are_rejected(overrides: dict) -> None:
    with pytest.raises(ValueError):
        DeduplicationPolicy.model_validate(overrides)


def test_normalization_policy_cleans_entries() -> None:
    policy = DeduplicationPolicy.model_validate(
        {"name_normalization": {"replacements": {" Govt ": "Government"}, "remove_common_words": ["The", " "]}}
    )
    assert policy.name_normalization.replacements == {"govt": "government"}
    assert policy.name_normalization.remove_common_words == ["the"]


def test_settings_defaults_without_config_files(tmp_path: Path) -> None:
    settings = Settings(config_dir=tmp_path)
    assert settings.environment == "development"
    assert settings.policies.deduplication == DeduplicationPolicy()
    assert settings.log_file.name == "orgdedup.log"
    assert not tmp_path.joinpath("logs").exists()


def test_repository_default_yaml_matches_model_defaults() -> None:
    settings = Settings(config_dir=DEFAULT_CONFIG_DIR)
    assert settings.policies.deduplication == DeduplicationPolicy()


def test_settings_environment_override(tmp_path: Path, minimal_policy_dict: dict) -> None:
    default_yaml = {
        "environment": "development",
        "log_level": "INFO",
        "paths": {"logs_dir": str(tmp_path / "logs")},
        "policies": minimal_policy_dict,
    }
    testing_yaml = {
        "log_level": "DEBUG",
        "policies": {"deduplication": {"similarity_threshold": 0.7}},
    }
    (tmp_path / "default.yaml").write_text(yaml.safe_dump(default_yaml), encoding="utf-8")
    (tmp_path / "testing.yaml").write_text(yaml.safe_dump(testing_yaml), encoding="utf-8")

    settings = Settings(config_dir=tmp_path, environment="testing")

    assert settings.log_level == "DEBUG"
    assert settings.policy_version == "test-version"
    assert settings.policies.deduplication.similarity_threshold == 0.7
    assert settings.policies.deduplication.conflict_resolution_strategy == "newest"
    assert settings.log_file == tmp_path / "logs" / "orgdedup.log"


def test_settings_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, minimal_policy_dict: dict) -> None:
    (tmp_path / "default.yaml").write_text(
        yaml.safe_dump({"log_level": "INFO", "policies": minimal_policy_dict}),
        encoding="utf-8",
    )
    monkeypatch.setenv("ORGDEDUP_SETTINGS__log_level", "WARNING")
    monkeypatch.setenv("ORGDEDUP_SETTINGS__policies__deduplication__max_bucket_size", "25")

    settings = Settings(config_dir=tmp_path)

    assert settings.log_level == "WARNING"
    assert settings.policies.deduplication.max_bucket_size == 25


def test_settings_create_dirs(tmp_path: Path) -> None:
    logs_dir = tmp_path / "custom-logs"
    Settings(config_dir=tmp_path, paths={"logs_dir": logs_dir, "output_dir": tmp_path / "out"}, create_dirs=True)
    assert logs_dir.is_dir()
    assert (tmp_path / "out").is_dir()
