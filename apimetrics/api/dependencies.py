"""Shared FastAPI dependencies — configuration and builder singletons."""

from __future__ import annotations

from typing import Optional

from ..config import MetricsConfig
from ..report_builder import MetricsReportBuilder
from ..sources.openapi_catalog import CatalogSource

# Module-level singletons (initialised at startup)
_config: Optional[MetricsConfig] = None
_report_builder: Optional[MetricsReportBuilder] = None


def init_dependencies(
    config: Optional[MetricsConfig] = None,
    catalog_source: Optional[CatalogSource] = None,
) -> None:
    """Initialise shared singletons.

    Called during app startup; a no-op when already initialised without
    explicit arguments, so tests can configure the app beforehand.
    """
    global _config, _report_builder  # noqa: PLW0603
    if _report_builder is not None and config is None and catalog_source is None:
        return
    _config = config or MetricsConfig()
    _report_builder = MetricsReportBuilder(_config, catalog_source=catalog_source)


def shutdown_dependencies() -> None:
    """Cleanup on shutdown."""
    global _config, _report_builder  # noqa: PLW0603
    _config = None
    _report_builder = None


def get_config() -> MetricsConfig:
    """Return the shared :class:`MetricsConfig`."""
    if _config is None:
        init_dependencies()
    return _config  # type: ignore[return-value]


def get_report_builder() -> MetricsReportBuilder:
    """Return the shared :class:`MetricsReportBuilder`."""
    if _report_builder is None:
        init_dependencies()
    return _report_builder  # type: ignore[return-value]
