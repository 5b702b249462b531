from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from paperclip_core.net.endpoint import (
    CATEGORIES_URL,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_SECONDS,
    LISTINGS_URL,
)
from paperclip_core.storage.disk import DEFAULT_APP_ID


class EndpointsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    categories_url: str = CATEGORIES_URL
    listings_url: str = LISTINGS_URL
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT, ge=0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    @field_validator("categories_url", "listings_url")
    @classmethod
    def validate_urls(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("endpoint urls must not be empty")
        return normalized


class CachingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    directory: str | None = None
    app_id: str = DEFAULT_APP_ID

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("caching.app_id must not be empty")
        return normalized


class BackoffConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_delay_seconds: float = Field(default=30.0, ge=0.0)
    max_jitter_seconds: float = Field(default=0.5, ge=0.0)


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoints: EndpointsConfig = Field(default_factory=EndpointsConfig)
    caching: CachingConfig = Field(default_factory=CachingConfig)
    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    max_workers: int = Field(default=4, ge=1)


def load_config(path: str | Path) -> ClientConfig:
    raw = Path(path).read_text(encoding="utf-8")
    payload = _parse_yaml_or_json(raw)
    try:
        return ClientConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = _parse_yaml(raw)
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed


def _parse_yaml(raw: str) -> dict[str, Any]:
    try:
        import yaml  # type: ignore[import-not-found]
    except ModuleNotFoundError as exc:
        raise ValueError(
            "YAML parsing requires PyYAML. Use JSON-compatible YAML or install pyyaml."
        ) from exc

    parsed = yaml.safe_load(raw)
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
