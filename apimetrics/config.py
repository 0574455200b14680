"""Metrics engine configuration — frozen dataclass with sensible defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_CATALOG_URL = (
    "https://raw.githubusercontent.com/meraki/openapi/v1-beta/openapi/spec3.json"
)


@dataclass(frozen=True)
class MetricsConfig:
    """Immutable configuration for the metrics aggregation engine.

    Attributes:
        failure_rate_threshold: Success-rate percentage below which an
            entity is flagged as ``HighFailureRate`` (strictly less than).
        traffic_threshold: Request count above which an (address, agent)
            pair or an off-peak hour is flagged.
        api_rate_limit: Upstream API rate budget in requests/second.
        high_activity_threshold: Burst rate (requests/second) at which an
            operation is flagged as ``HighActivity``.
        burst_window_seconds: Width of the sliding burst window.
        busiest_hours_count: Number of hour buckets reported as busiest.
        summary_limit: Length of every Top-N leaderboard.
        peak_start_hour: First hour (inclusive) of the business-hours window.
        peak_end_hour: Last hour (exclusive) of the business-hours window.
        utc_offset_minutes: Fixed offset used for local time bucketing.
            ``None`` uses the host's local time zone.
        agent_truncate_length: Maximum user-agent length in finding names.
        catalog_url: URL of the OpenAPI document used as operation catalog.
        catalog_timeout: HTTP timeout for the catalog fetch, in seconds.
        enable_catalog: Whether to fetch the catalog at all.
        enable_prometheus: Record build metrics in the Prometheus registry.
        templates_dir: Path to Jinja2 templates.
        output_dir: Path to write rendered reports.
    """

    # Anomaly thresholds ------------------------------------------------------
    failure_rate_threshold: float = 50.0
    traffic_threshold: int = 500
    api_rate_limit: float = 10.0
    high_activity_threshold: float = 5.0
    burst_window_seconds: float = 1.0
    busiest_hours_count: int = 3

    # Summary -----------------------------------------------------------------
    summary_limit: int = 5

    # Time bucketing ----------------------------------------------------------
    peak_start_hour: int = 8
    peak_end_hour: int = 20
    utc_offset_minutes: Optional[int] = None

    # Display -----------------------------------------------------------------
    agent_truncate_length: int = 40

    # Operation catalog -------------------------------------------------------
    catalog_url: str = DEFAULT_CATALOG_URL
    catalog_timeout: float = 30.0
    enable_catalog: bool = True

    # Telemetry ---------------------------------------------------------------
    enable_prometheus: bool = True

    # Paths -------------------------------------------------------------------
    templates_dir: str = field(
        default_factory=lambda: os.path.join(
            os.path.dirname(__file__), "templates",
        ),
    )
    output_dir: str = field(
        default_factory=lambda: os.path.join(
            os.path.dirname(__file__), "..", "reports",
        ),
    )

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not 0.0 <= self.failure_rate_threshold <= 100.0:
            raise ValueError("failure_rate_threshold must be within [0, 100]")
        if self.traffic_threshold < 0:
            raise ValueError("traffic_threshold must be >= 0")
        if self.api_rate_limit <= 0:
            raise ValueError("api_rate_limit must be > 0")
        if self.burst_window_seconds <= 0:
            raise ValueError("burst_window_seconds must be > 0")
        if self.summary_limit < 1:
            raise ValueError("summary_limit must be >= 1")
        if not 0 <= self.peak_start_hour < self.peak_end_hour <= 24:
            raise ValueError("peak hours must satisfy 0 <= start < end <= 24")
        if self.utc_offset_minutes is not None and abs(self.utc_offset_minutes) >= 24 * 60:
            raise ValueError("utc_offset_minutes must be within one day")
