"""Configuration management — load, validate, merge YAML + env vars.

Uses Pydantic v2 for schema validation and PyYAML for file parsing.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from apimetrics.config import DEFAULT_CATALOG_URL, MetricsConfig


# ── Pydantic settings models ───────────────────────────────────────


class SystemSettings(BaseModel):
    """Top-level system settings."""

    model_config = ConfigDict(frozen=True)

    project_name: str = "API Metrics Engine"
    version: str = "1.0.0"
    log_level: str = "INFO"
    correlation_id_header: str = "X-Correlation-ID"

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = v.upper()
        if upper not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}, got '{v}'")
        return upper


class AnomalySettings(BaseModel):
    """Thresholds used by the anomaly rules."""

    model_config = ConfigDict(frozen=True)

    failure_rate_threshold: float = 50.0
    traffic_threshold: int = 500
    api_rate_limit: float = 10.0
    high_activity_threshold: float = 5.0
    burst_window_seconds: float = 1.0
    busiest_hours_count: int = 3
    peak_start_hour: int = 8
    peak_end_hour: int = 20


class CatalogSettings(BaseModel):
    """Operation catalog fetch."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    url: str = DEFAULT_CATALOG_URL
    timeout_seconds: float = 30.0


class ReportingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)
    default_format: str = "markdown"
    output_directory: str = "reports"
    summary_limit: int = 5
    utc_offset_minutes: Optional[int] = None
    agent_truncate_length: int = 40
    enable_prometheus: bool = True


class APISettings(BaseModel):
    model_config = ConfigDict(frozen=True)
    host: str = "0.0.0.0"
    port: int = 8000
    enable_cors: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


# ── Top-level config ───────────────────────────────────────────────


class SystemConfig(BaseModel):
    """Complete application configuration."""

    model_config = ConfigDict(frozen=True)

    system: SystemSettings = Field(default_factory=SystemSettings)
    anomalies: AnomalySettings = Field(default_factory=AnomalySettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    api: APISettings = Field(default_factory=APISettings)

    def to_metrics_config(self) -> MetricsConfig:
        """Project these settings onto the engine's :class:`MetricsConfig`.

        Raises:
            ValueError: If the values fail engine validation.
        """
        a = self.anomalies
        r = self.reporting
        return MetricsConfig(
            failure_rate_threshold=a.failure_rate_threshold,
            traffic_threshold=a.traffic_threshold,
            api_rate_limit=a.api_rate_limit,
            high_activity_threshold=a.high_activity_threshold,
            burst_window_seconds=a.burst_window_seconds,
            busiest_hours_count=a.busiest_hours_count,
            summary_limit=r.summary_limit,
            peak_start_hour=a.peak_start_hour,
            peak_end_hour=a.peak_end_hour,
            utc_offset_minutes=r.utc_offset_minutes,
            agent_truncate_length=r.agent_truncate_length,
            catalog_url=self.catalog.url,
            catalog_timeout=self.catalog.timeout_seconds,
            enable_catalog=self.catalog.enabled,
            enable_prometheus=r.enable_prometheus,
            output_dir=r.output_directory,
        )


# ── ConfigManager ──────────────────────────────────────────────────

# Environment variable → config path mapping.
_ENV_MAP: Dict[str, str] = {
    "APIMETRICS_LOG_LEVEL": "system.log_level",
    "APIMETRICS_CATALOG_URL": "catalog.url",
    "APIMETRICS_ENABLE_CATALOG": "catalog.enabled",
    "APIMETRICS_API_PORT": "api.port",
    "APIMETRICS_OUTPUT_DIR": "reporting.output_directory",
    "APIMETRICS_UTC_OFFSET_MINUTES": "reporting.utc_offset_minutes",
}

_INT_KEYS = {"api.port", "reporting.utc_offset_minutes"}
_BOOL_KEYS = {"catalog.enabled"}


class ConfigManager:
    """Load, validate, and merge configuration from YAML + env vars."""

    @staticmethod
    def load(config_path: str = "config.yaml") -> SystemConfig:
        """Load config from *config_path*, validate, merge env vars.

        A missing file yields the defaults.

        Raises:
            yaml.YAMLError: If the file contains invalid YAML.
            pydantic.ValidationError: If the data fails validation.
        """
        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as fh:
                raw: Dict[str, Any] = yaml.safe_load(fh) or {}
        else:
            raw = {}

        config = SystemConfig.model_validate(raw)
        config = ConfigManager.merge_env_vars(config)
        return config

    @staticmethod
    def validate(config: SystemConfig) -> List[str]:
        """Return a list of human-readable validation issues.

        An empty list means the config is valid.
        """
        issues: List[str] = []

        a = config.anomalies
        if not 0.0 <= a.failure_rate_threshold <= 100.0:
            issues.append("anomalies.failure_rate_threshold must be within [0, 100]")
        if a.traffic_threshold < 0:
            issues.append("anomalies.traffic_threshold must be >= 0")
        if a.api_rate_limit <= 0:
            issues.append("anomalies.api_rate_limit must be > 0")
        if a.burst_window_seconds <= 0:
            issues.append("anomalies.burst_window_seconds must be > 0")
        if not 0 <= a.peak_start_hour < a.peak_end_hour <= 24:
            issues.append("anomalies.peak_start_hour/peak_end_hour must satisfy 0 <= start < end <= 24")

        if config.catalog.enabled and not config.catalog.url:
            issues.append("catalog.url is required when the catalog is enabled")

        if config.reporting.summary_limit < 1:
            issues.append("reporting.summary_limit must be >= 1")
        if config.reporting.default_format not in ("markdown", "json"):
            issues.append("reporting.default_format must be 'markdown' or 'json'")
        offset = config.reporting.utc_offset_minutes
        if offset is not None and abs(offset) >= 24 * 60:
            issues.append("reporting.utc_offset_minutes must be within one day")

        if config.api.port <= 0:
            issues.append("api.port must be a positive integer")

        return issues

    @staticmethod
    def merge_env_vars(config: SystemConfig) -> SystemConfig:
        """Override config values from environment variables.

        Returns a **new** frozen :class:`SystemConfig` with overrides
        applied.
        """
        overrides: Dict[str, Any] = {}

        for env_key, config_path in _ENV_MAP.items():
            value = os.environ.get(env_key)
            if value is None:
                continue

            parts = config_path.split(".")
            d = overrides
            for p in parts[:-1]:
                d = d.setdefault(p, {})

            # Coerce types
            if config_path in _INT_KEYS:
                d[parts[-1]] = int(value)
            elif config_path in _BOOL_KEYS:
                d[parts[-1]] = value.lower() in ("1", "true", "yes")
            else:
                d[parts[-1]] = value

        if not overrides:
            return config

        # Deep-merge overrides into the existing dump
        base = config.model_dump()
        _deep_merge(base, overrides)
        return SystemConfig.model_validate(base)

    @staticmethod
    def get_default_config() -> SystemConfig:
        """Return a :class:`SystemConfig` with all defaults."""
        return SystemConfig()

    @staticmethod
    def save(config: SystemConfig, path: str) -> None:
        """Dump *config* to a YAML file at *path*."""
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as fh:
            yaml.dump(
                config.model_dump(),
                fh,
                default_flow_style=False,
                sort_keys=False,
            )


# ── helpers ────────────────────────────────────────────────────────


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge *overrides* into *base* (mutating)."""
    for k, v in overrides.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
