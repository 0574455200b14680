"""Structured JSON logging and Prometheus metrics for the metrics engine."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from prometheus_client import CollectorRegistry, Counter, Histogram

PACKAGE_LOGGER = "apimetrics"


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

class _JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "correlation_id"):
            payload["correlation_id"] = record.correlation_id
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = str(record.exc_info[1])
        return json.dumps(payload)


def get_logger(name: str) -> logging.Logger:
    """Return a logger whose records reach the JSON handler.

    The handler and default level live on the ``apimetrics`` package
    logger, so one ``setLevel`` there governs every engine module.

    Args:
        name: Logger name (usually ``__name__``).

    Returns:
        Configured :class:`logging.Logger`.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_JSONFormatter())
        package.addHandler(handler)
        package.setLevel(logging.INFO)
    return logging.getLogger(name)


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------

registry = CollectorRegistry()

reports_built_total = Counter(
    "apimetrics_reports_built_total",
    "Total metrics reports built",
    labelnames=["kind"],
    registry=registry,
)
report_build_seconds = Histogram(
    "apimetrics_report_build_seconds",
    "Time to build a metrics report",
    labelnames=["kind"],
    registry=registry,
)
records_processed_total = Counter(
    "apimetrics_records_processed_total",
    "Total input records aggregated",
    labelnames=["kind"],
    registry=registry,
)
anomalies_detected_total = Counter(
    "apimetrics_anomalies_detected_total",
    "Anomaly findings emitted, by type",
    labelnames=["type"],
    registry=registry,
)
catalog_fetch_failures_total = Counter(
    "apimetrics_catalog_fetch_failures_total",
    "Operation catalog fetches that degraded to an empty catalog",
    registry=registry,
)
