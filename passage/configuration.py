"""Layered configuration loader for Passage.

Sources, later ones winning: a user-level ``config.yaml`` under
``$XDG_CONFIG_HOME/passage`` (``~/.config/passage``), a ``config.yaml`` in the
working directory, a ``.env`` file in the working directory, and the process
environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import TranslationProviderConfigurationError

APP_DIR_NAME = "passage"
CONFIG_FILENAME = "config.yaml"

POSITIVE_LIMITS = ("RATE_MAX_CHARS", "UPSTREAM_TIMEOUT_MS")
NON_NEGATIVE_LIMITS = ("RATE_MAX_TOTAL_CHARS", "BATCH_INTER_DELAY_MS")


class PassageConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    PASSAGE_PROVIDER: Literal["deepl", "openai", "echo"] = Field(
        default="deepl",
        description="Translation backend used for upstream calls.",
    )
    DEEPL_KEY: Optional[str] = Field(default=None, repr=False)
    DEEPL_API_URL: Optional[str] = Field(
        default=None,
        description="Overrides the endpoint derived from the key type.",
    )
    OPENAI_API_KEY: Optional[str] = Field(default=None, repr=False)
    OPENAI_MODEL: Optional[str] = Field(default=None)
    RATE_MAX_CHARS: int = Field(
        default=50000,
        description="Maximum characters per upstream call and per batch.",
    )
    RATE_MAX_TOTAL_CHARS: int = Field(
        default=0,
        description="Maximum characters per request; 0 disables the check.",
    )
    BATCH_INTER_DELAY_MS: int = Field(
        default=0,
        description="Pause between sequential batch calls.",
    )
    UPSTREAM_TIMEOUT_MS: int = Field(
        default=30000,
        description="Upstream call timeout.",
    )
    PASSAGE_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    @classmethod
    def _normalise_provider(cls, data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("PASSAGE_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("_", "-")
                synonyms = {
                    "deepl-api": "deepl",
                    "gpt": "openai",
                    "noop": "echo",
                    "mock": "echo",
                }
                data["PASSAGE_PROVIDER"] = synonyms.get(normalized, normalized)
        return data


@dataclass(frozen=True)
class ConfigInstance:
    """Validated settings plus the source each value was taken from."""

    settings: PassageConfig
    sources: Dict[str, str] = field(default_factory=dict)

    def model(self) -> PassageConfig:
        return self.settings


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    combined: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    for path in discover_file_paths(base_dir):
        _merge_layer(combined, sources, _load_yaml(path), source=f"file:{path}")
    _merge_env_sources(combined, sources, app_dir=base_dir)

    try:
        settings = PassageConfig.model_validate(combined)
    except ValidationError as exc:
        issues = _format_validation_errors(exc.errors(), sources)
        raise TranslationProviderConfigurationError(issues) from exc
    _validate_limits(settings)

    return ConfigInstance(settings=settings, sources=sources)


def discover_file_paths(app_dir: Path) -> List[Path]:
    """Return existing YAML files, lowest precedence first."""

    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    candidates = [
        Path(config_home) / APP_DIR_NAME / CONFIG_FILENAME,
        app_dir / CONFIG_FILENAME,
    ]
    return [path for path in candidates if path.is_file()]


def _load_yaml(path: Path) -> Mapping[str, Any]:
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except yaml.YAMLError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration file {path} is not valid YAML: {exc}"
        ) from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise TranslationProviderConfigurationError(
            f"Invalid configuration file {path}: expected a mapping at the root."
        )
    return parsed


def _merge_layer(
    target: Dict[str, Any],
    sources: Dict[str, str],
    values: Mapping[str, Any],
    *,
    source: str,
) -> None:
    allowed = PassageConfig.model_fields.keys()
    for key, value in sorted(values.items()):
        if key not in allowed or value is None:
            continue
        target[key] = value
        sources[key] = source


def _merge_env_sources(
    target: Dict[str, Any],
    sources: Dict[str, str],
    *,
    app_dir: Path,
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        _merge_layer(target, sources, dotenv_values(dotenv_path), source="env:.env")

    _merge_layer(target, sources, dict(os.environ), source="env:process")


def check_limits(limits: Mapping[str, int]) -> None:
    """Reject out-of-range limits, whether they come from settings or flags."""

    errors: list[str] = []
    for name, value in limits.items():
        if name in POSITIVE_LIMITS and value < 1:
            errors.append(f"{name} must be at least 1.")
        elif name in NON_NEGATIVE_LIMITS and value < 0:
            errors.append(f"{name} must not be negative.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _validate_limits(settings: PassageConfig) -> None:
    check_limits(
        {name: getattr(settings, name) for name in POSITIVE_LIMITS + NON_NEGATIVE_LIMITS}
    )


def _format_validation_errors(
    entries: Sequence[Mapping[str, Any]],
    sources: Optional[Mapping[str, str]] = None,
) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("loc") or entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source") or (sources or {}).get(location)
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> PassageConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()
