"""Observability settings using Pydantic BaseSettings."""

from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from insightops.core.errors import ConfigurationError
from insightops.core.models import DependencyConfig


class DependencySettings(BaseModel):
    """A dependency health endpoint as configured."""

    name: str
    endpoint: str
    critical: bool = True

    @field_validator("name", "endpoint")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("endpoint")
    @classmethod
    def _http_url(cls, value: str) -> str:
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"invalid URL: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError("must be an absolute http(s) URL")
        return value

    def to_config(self) -> DependencyConfig:
        return DependencyConfig(name=self.name, endpoint=self.endpoint, critical=self.critical)


class ObservabilitySettings(BaseSettings):
    """Observability configuration loaded from environment variables.

    Variables use the ``INSIGHTOPS_`` prefix, e.g.
    ``INSIGHTOPS_METRICS_INTERVAL_SECONDS=5``. Dependencies are given as a
    JSON list: ``INSIGHTOPS_DEPENDENCIES='[{"name": "order-service",
    "endpoint": "http://orders:8080/health"}]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="INSIGHTOPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="insightops")
    log_level: str = Field(default="INFO")
    log_buffer_size: int = Field(default=1000, gt=0)

    # Sampling and retention
    metrics_interval_seconds: float = Field(default=10.0, gt=0)
    retention_hours: float = Field(default=24.0, gt=0)
    storage_path: str = Field(default="/")

    # Live channel
    subscriber_queue_size: int = Field(default=100, gt=0)

    # Health checks
    health_timeout_seconds: float = Field(default=5.0, gt=0)
    dependencies: list[DependencySettings] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _valid_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level

    @model_validator(mode="after")
    def _unique_dependencies(self) -> "ObservabilitySettings":
        names = [dep.name for dep in self.dependencies]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate dependency names: {', '.join(duplicates)}")
        return self

    @property
    def retention_seconds(self) -> float:
        return self.retention_hours * 3600

    def dependency_configs(self) -> list[DependencyConfig]:
        return [dep.to_config() for dep in self.dependencies]


def load_settings(**overrides: Any) -> ObservabilitySettings:
    """Load settings from the environment, applying explicit overrides.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    try:
        return ObservabilitySettings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid observability settings: {exc}") from exc
