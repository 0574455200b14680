"""Report assembler — sequences every stage into a finished metrics document.

Request-log batches go through normalization, dimensional grouping,
catalog/roster enrichment, per-agent profiles, the Top-N reducer and the
anomaly detector.  Webhook-delivery batches share the normalizer and the
grouping engine but need no catalog, so they build synchronously.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from collections.abc import Mapping
from pathlib import Path
from typing import Any, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .analysis.anomaly_detector import AnomalyDetector
from .analysis.enricher import CatalogIndex, RosterIndex, RosterInput, enrich_actors, enrich_operations
from .analysis.grouping import by_attribute, by_day, by_hour, group_and_count, to_sorted_metrics
from .analysis.normalizer import NormalizedRecord, batch_window, normalize_batch
from .analysis.profile_builder import ProfileBuilder
from .analysis.summary_reducer import SummaryReducer
from .analysis.usage_patterns import identify_scheduled_patterns, source_addresses_by_hour
from .analysis.webhook_analyzer import WebhookAnalyzer
from .config import MetricsConfig
from .errors import InputShapeError
from .schema import (
    DeliveryRecord,
    MetricsReport,
    OperationCatalogEntry,
    ReportFormat,
    ReportMeta,
    RequestRecord,
    WebhookReport,
)
from .sources.openapi_catalog import CatalogSource, OpenAPICatalogSource, StaticCatalogSource
from .telemetry import (
    anomalies_detected_total,
    catalog_fetch_failures_total,
    get_logger,
    records_processed_total,
    report_build_seconds,
    reports_built_total,
)

_logger = get_logger(__name__)

R = TypeVar("R", bound=BaseModel)
AnyReport = Union[MetricsReport, WebhookReport]


def coerce_batch(records: Any, model: Type[R]) -> List[R]:
    """Validate that *records* is a sequence of records of type *model*.

    Elements may be model instances or mappings using either the wire
    (camelCase) or attribute names.

    Raises:
        InputShapeError: If *records* is not a list or tuple, or an element
            is not a mapping/record or fails validation.
    """
    if not isinstance(records, (list, tuple)):
        raise InputShapeError(
            f"expected a list of records, got {type(records).__name__}",
        )
    batch: List[R] = []
    for index, raw in enumerate(records):
        if isinstance(raw, model):
            batch.append(raw)
            continue
        if not isinstance(raw, Mapping):
            raise InputShapeError(
                f"expected a mapping, got {type(raw).__name__}", index=index,
            )
        try:
            batch.append(model.model_validate(dict(raw)))
        except ValidationError as exc:
            raise InputShapeError(
                f"invalid {model.__name__}: {exc.errors()[0]['msg']}", index=index,
            ) from exc
    return batch


class MetricsReportBuilder:
    """Assemble :class:`MetricsReport` and :class:`WebhookReport` documents.

    Each build allocates its own intermediate state, so one builder can
    serve any number of builds.

    Args:
        config: Engine configuration.
        catalog_source: Operation catalog provider.  Defaults to the
            configured OpenAPI URL, or an empty catalog when catalog
            fetching is disabled.
    """

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        catalog_source: Optional[CatalogSource] = None,
    ) -> None:
        self._cfg = config or MetricsConfig()
        if catalog_source is None:
            catalog_source = (
                OpenAPICatalogSource(self._cfg.catalog_url, self._cfg.catalog_timeout)
                if self._cfg.enable_catalog
                else StaticCatalogSource()
            )
        self._catalog_source = catalog_source
        self._detector = AnomalyDetector(self._cfg)

    @property
    def config(self) -> MetricsConfig:
        return self._cfg

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def build_metrics_report(
        self,
        records: Sequence[Any],
        roster: Optional[RosterInput] = None,
    ) -> MetricsReport:
        """Build the request-log report for one batch.

        The catalog fetch is the only awaited step.  Its failure leaves
        the catalog empty and the report is still produced.

        Args:
            records: Request records (models or mappings).
            roster: Optional actor roster for display labels.

        Returns:
            The finished report, anomalies included.

        Raises:
            InputShapeError: If *records* is not a sequence of records.
        """
        batch = coerce_batch(records, RequestRecord)
        started = time.perf_counter()
        entries = await self._fetch_catalog()
        report = self.assemble(batch, entries, roster)
        self._observe("requests", started, len(batch), report)
        return report

    def assemble(
        self,
        records: Sequence[RequestRecord],
        catalog_entries: Sequence[OperationCatalogEntry] = (),
        roster: Optional[RosterInput] = None,
    ) -> MetricsReport:
        """Synchronous core of :meth:`build_metrics_report`.

        Args:
            records: Validated request records.
            catalog_entries: Operation catalog already fetched.
            roster: Optional actor roster.
        """
        catalog = CatalogIndex(catalog_entries)
        roster_index = RosterIndex(roster)
        normalized = normalize_batch(records, self._cfg.utc_offset_minutes)

        operations = enrich_operations(
            to_sorted_metrics(group_and_count(records, normalized, by_attribute("operation_id"))),
            catalog,
        )
        applications = ProfileBuilder(roster_index).build(records, normalized)

        draft = MetricsReport(
            actors=enrich_actors(
                to_sorted_metrics(group_and_count(records, normalized, by_attribute("actor_id"))),
                roster_index,
            ),
            agents=to_sorted_metrics(
                group_and_count(records, normalized, by_attribute("user_agent")),
            ),
            operations=operations,
            source_addresses=to_sorted_metrics(
                group_and_count(records, normalized, by_attribute("source_address")),
            ),
            hourly_activity=to_sorted_metrics(
                group_and_count(records, normalized, by_hour, drop_missing=True),
            ),
            daily_activity=to_sorted_metrics(
                group_and_count(records, normalized, by_day, drop_missing=True),
            ),
            applications=applications,
            deprecated_operations=[op for op in operations if op.deprecated],
            beta_operations=[op for op in operations if op.beta],
            source_addresses_by_hour=source_addresses_by_hour(records, normalized),
            scheduled_patterns=identify_scheduled_patterns(
                records, normalized, self._cfg.traffic_threshold,
            ),
            meta=self._meta(normalized, catalog),
            summary=SummaryReducer(self._cfg.summary_limit).reduce(applications),
        )
        anomalies = self._detector.detect(draft, records, normalized, catalog)
        return draft.model_copy(update={"anomalies": anomalies})

    def build_webhook_metrics(self, deliveries: Sequence[Any]) -> WebhookReport:
        """Build the webhook-delivery report for one batch.

        Raises:
            InputShapeError: If *deliveries* is not a sequence of records.
        """
        batch = coerce_batch(deliveries, DeliveryRecord)
        started = time.perf_counter()
        normalized = normalize_batch(batch, self._cfg.utc_offset_minutes)
        report = WebhookAnalyzer().analyze(batch, normalized)
        self._observe("webhooks", started, len(batch), report)
        return report

    def render(self, report: AnyReport, fmt: str = "markdown") -> str:
        """Render a report to a string in the given format.

        Args:
            report: Request-log or webhook report.
            fmt: ``markdown`` or ``json``.
        """
        if fmt.lower() == ReportFormat.MARKDOWN.value:
            from .generators.markdown_generator import MarkdownGenerator
            return MarkdownGenerator(config=self._cfg).generate(report)
        from .generators.json_generator import JSONGenerator
        return JSONGenerator().generate(report)

    def save(
        self,
        report: AnyReport,
        fmt: str = "markdown",
        output_dir: Optional[str] = None,
    ) -> str:
        """Render and save a report to disk.

        Returns:
            Path of the written file.
        """
        out_dir = Path(output_dir or self._cfg.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        content = self.render(report, fmt)
        ext = ".md" if fmt.lower() == ReportFormat.MARKDOWN.value else ".json"
        kind = "webhook" if isinstance(report, WebhookReport) else "api"
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        path = out_dir / f"{kind}-metrics-{stamp}{ext}"
        path.write_text(content, encoding="utf-8")
        _logger.info("Saved report to %s", path)
        return str(path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_catalog(self) -> List[OperationCatalogEntry]:
        try:
            return list(await self._catalog_source.fetch())
        except Exception as exc:
            catalog_fetch_failures_total.inc()
            _logger.warning("Catalog source failed, continuing without it: %s", exc)
            return []

    def _meta(self, normalized: List[NormalizedRecord], catalog: CatalogIndex) -> ReportMeta:
        timespan_ms, start, end, invalid = batch_window(normalized)
        if invalid:
            _logger.warning("%d request record(s) with unparseable timestamp", invalid)
        return ReportMeta(
            count=len(normalized),
            timespan_ms=timespan_ms,
            start_time=start,
            end_time=end,
            invalid_timestamps=invalid,
            catalog_size=len(catalog),
            catalog_available=len(catalog) > 0,
        )

    def _observe(self, kind: str, started: float, count: int, report: AnyReport) -> None:
        elapsed = time.perf_counter() - started
        _logger.info("Built %s report from %d record(s) in %.3fs", kind, count, elapsed)
        if not self._cfg.enable_prometheus:
            return
        reports_built_total.labels(kind=kind).inc()
        report_build_seconds.labels(kind=kind).observe(elapsed)
        records_processed_total.labels(kind=kind).inc(count)
        for finding in getattr(report, "anomalies", []):
            anomalies_detected_total.labels(type=finding.type.value).inc()
