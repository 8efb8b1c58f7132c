"""Configuration management built on top of the policy primitives."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policies import Policies, load_policies

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "default.yaml"
SETTINGS_ENV_PREFIX = "ORGDEDUP_SETTINGS__"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries."""

    result = dict(base)
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file '{path}' must contain a mapping at the top level")
    return loaded


def _apply_env_overrides(base: Dict[str, Any]) -> Dict[str, Any]:
    """Apply overrides from ORGDEDUP_SETTINGS__* environment variables."""

    result = dict(base)
    for key, value in os.environ.items():
        if not key.startswith(SETTINGS_ENV_PREFIX):
            continue
        path = key[len(SETTINGS_ENV_PREFIX) :].lower().split("__")
        cursor = result
        for part in path[:-1]:
            nested = cursor.get(part)
            if not isinstance(nested, dict):
                nested = {}
            else:
                nested = dict(nested)
            cursor[part] = nested
            cursor = nested
        try:
            cursor[path[-1]] = json.loads(value)
        except json.JSONDecodeError:
            cursor[path[-1]] = value
    return result


class PathsConfig(BaseModel):
    """Filesystem layout for run artefacts."""

    logs_dir: Path = Field(default=PROJECT_ROOT / "logs")
    output_dir: Path = Field(default=PROJECT_ROOT / "output")

    @field_validator("logs_dir", "output_dir", mode="after")
    @classmethod
    def _anchor_relative(cls, value: Path) -> Path:
        return value if value.is_absolute() else PROJECT_ROOT / value

    def ensure_exists(self) -> None:
        """Create directories backing every configured path if they are missing."""
        for field_name in type(self).model_fields:
            Path(getattr(self, field_name)).mkdir(parents=True, exist_ok=True)


class Settings(BaseSettings):
    """Primary configuration object for the deduplication engine.

    Precedence (highest first): explicit kwargs, environment variables prefixed
    with ``ORGDEDUP_`` (handled by :class:`BaseSettings`), nested overrides via
    ``ORGDEDUP_SETTINGS__`` variables, environment-specific YAML (e.g.
    ``production.yaml``), the default YAML file, and finally the class
    defaults. Policy values can additionally be overridden with
    ``ORGDEDUP_POLICY__`` variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="ORGDEDUP_",
        validate_assignment=True,
        extra="allow",
    )

    environment: Literal["development", "testing", "production"] = Field(
        default="development",
        description="Active runtime environment",
    )
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    create_dirs: bool = Field(
        default=False,
        description="Create filesystem directories declared in `paths` during initialisation.",
    )
    log_level: str = Field(default="INFO")
    policies: Policies = Field(default_factory=Policies)

    @model_validator(mode="before")
    @classmethod
    def _bootstrap_from_files(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Load YAML files and merge with provided overrides."""

        config_dir = Path(values.get("config_dir") or DEFAULT_CONFIG_DIR)
        environment = values.get("environment") or os.getenv("ORGDEDUP_ENV", "development")
        base_config = _load_yaml_file(config_dir / "default.yaml")
        env_config = _load_yaml_file(config_dir / f"{environment}.yaml")
        merged = _deep_merge(base_config, env_config)
        hydrated = _apply_env_overrides(merged)

        combined = _deep_merge(hydrated, {k: v for k, v in values.items() if v is not None})

        policies_data = combined.pop("policies", None)
        if isinstance(policies_data, Policies):
            combined["policies"] = policies_data
            return combined

        if policies_data is None:
            candidate = {
                key: hydrated.get(key)
                for key in Policies.model_fields.keys()
                if key in hydrated
            }
            policies_data = {k: v for k, v in candidate.items() if v is not None}
            for key in candidate:
                combined.pop(key, None)
        combined["policies"] = load_policies(policies_data)
        return combined

    @model_validator(mode="after")
    def _ensure_paths(self) -> "Settings":
        """Ensure filesystem paths exist when directory creation is enabled."""

        if self.create_dirs:
            self.paths.ensure_exists()
        return self

    @property
    def policy_version(self) -> str:
        return self.policies.policy_version

    @property
    def log_file(self) -> Path:
        return self.paths.logs_dir / "orgdedup.log"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a singleton settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings", "PathsConfig", "PROJECT_ROOT", "DEFAULT_CONFIG_DIR"]
