"""Anomaly detector — ordered, stateless rules over a finished metrics report."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Tuple

from ..config import MetricsConfig
from ..schema import (
    AnomalyFinding,
    AnomalyType,
    GroupKey,
    MetricsReport,
    NamedMetric,
    OperationMetric,
    RequestRecord,
    key_label,
)
from ..telemetry import get_logger
from .enricher import CatalogIndex
from .grouping import by_attribute, clean_key, partition, sort_by_volume
from .normalizer import NormalizedRecord, hour_from_key
from .usage_patterns import (
    detect_pagination,
    find_organization_alternative,
    max_burst_rate,
    operation_scope,
    truncate_agent,
)

_logger = get_logger(__name__)

# Findings of these types describe the traffic rather than flag a deviation.
_INFORMATIONAL = frozenset({AnomalyType.BUSIEST_HOURS})


class AnomalyDetector:
    """Evaluate every rule against a report and the raw batch it came from.

    Rules run in a fixed order and never mutate the report.  Within a
    rule, findings follow the sort order of the dimension being read.

    Args:
        config: Thresholds and windows.
    """

    def __init__(self, config: MetricsConfig | None = None) -> None:
        self._cfg = config or MetricsConfig()

    def detect(
        self,
        report: MetricsReport,
        records: Sequence[RequestRecord],
        normalized: Sequence[NormalizedRecord],
        catalog: CatalogIndex,
    ) -> List[AnomalyFinding]:
        """Return all findings, or a single ``NoAnomalies`` sentinel.

        Args:
            report: Report assembled from *records* (anomalies unset).
            records: The raw request batch.
            normalized: Normalizer output aligned with *records*.
            catalog: Operation catalog used for scope alternatives.
        """
        rules: List[Callable[[], List[AnomalyFinding]]] = [
            lambda: self.high_failure_rate(report),
            lambda: self.deprecated_operations(report),
            lambda: self.beta_operations(report),
            lambda: self.high_traffic(records, normalized),
            lambda: self.high_activity(report, records, normalized, catalog),
            lambda: self.busiest_hours(report),
            lambda: self.off_peak_activity(report),
        ]
        findings: List[AnomalyFinding] = []
        for rule in rules:
            findings.extend(rule())

        if not any(f.type not in _INFORMATIONAL for f in findings):
            findings.append(AnomalyFinding(
                type=AnomalyType.NO_ANOMALIES,
                entity_type="System",
                entity_name="All",
                details={},
            ))
        _logger.info("Anomaly detection produced %d finding(s)", len(findings))
        return findings

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def high_failure_rate(self, report: MetricsReport) -> List[AnomalyFinding]:
        """Entities whose success rate is strictly below the threshold."""
        threshold = self._cfg.failure_rate_threshold
        dimensions: List[Tuple[str, Sequence[NamedMetric]]] = [
            ("Actor", report.actors),
            ("Agent", report.agents),
            ("Operation", report.operations),
            ("SourceAddress", report.source_addresses),
            ("Hour", report.hourly_activity),
            ("Day", report.daily_activity),
        ]
        findings: List[AnomalyFinding] = []
        for entity_type, metrics in dimensions:
            for metric in metrics:
                rate = metric.success_rate_value
                if rate is None or rate >= threshold:
                    continue
                details: Dict[str, Any] = {
                    "success_rate": metric.success_rate,
                    "threshold": threshold,
                    "success": metric.success,
                    "failure": metric.failure,
                }
                label = getattr(metric, "display_label", None)
                if label:
                    details["display_label"] = label
                findings.append(AnomalyFinding(
                    type=AnomalyType.HIGH_FAILURE_RATE,
                    entity_type=entity_type,
                    entity_name=metric.name,
                    details=details,
                ))
        return findings

    def deprecated_operations(self, report: MetricsReport) -> List[AnomalyFinding]:
        """Observed operations the catalog marks as deprecated."""
        return [
            AnomalyFinding(
                type=AnomalyType.DEPRECATED_OPERATION,
                entity_type="Operation",
                entity_name=op.name,
                details={
                    "description": op.description,
                    "calls": op.total,
                    "user_agents": _agents_calling(report, op),
                },
            )
            for op in report.operations
            if op.deprecated and op.total > 0
        ]

    def beta_operations(self, report: MetricsReport) -> List[AnomalyFinding]:
        """Observed operations the catalog tags as beta."""
        return [
            AnomalyFinding(
                type=AnomalyType.BETA_OPERATION,
                entity_type="Operation",
                entity_name=op.name,
                details={
                    "description": op.description,
                    "calls": op.total,
                    "user_agents": _agents_calling(report, op),
                },
            )
            for op in report.operations
            if op.beta and op.total > 0
        ]

    def high_traffic(
        self,
        records: Sequence[RequestRecord],
        normalized: Sequence[NormalizedRecord],
    ) -> List[AnomalyFinding]:
        """(source address, agent) pairs above the traffic threshold."""
        pairs: Dict[Tuple[GroupKey, GroupKey], List[int]] = {}
        for record, norm in zip(records, normalized):
            key = (clean_key(record.source_address), clean_key(record.user_agent))
            counts = pairs.setdefault(key, [0, 0])
            counts[0 if norm.is_success else 1] += 1

        threshold = self._cfg.traffic_threshold
        heavy = [
            (key, counts) for key, counts in pairs.items()
            if sum(counts) > threshold
        ]
        findings: List[AnomalyFinding] = []
        for (address, agent), (success, failure) in sort_by_volume(heavy, lambda kv: sum(kv[1])):
            ip = key_label(address)
            short_agent = truncate_agent(key_label(agent), self._cfg.agent_truncate_length)
            total = success + failure
            findings.append(AnomalyFinding(
                type=AnomalyType.HIGH_TRAFFIC,
                entity_type="IPUserAgent",
                entity_name=f"{ip}|{short_agent}",
                details={
                    "source_address": ip,
                    "user_agent": short_agent,
                    "total_requests": total,
                    "successful_requests": success,
                    "failed_requests": failure,
                    "success_rate": f"{success / total * 100:.2f}%",
                    "threshold": threshold,
                },
            ))
        return findings

    def high_activity(
        self,
        report: MetricsReport,
        records: Sequence[RequestRecord],
        normalized: Sequence[NormalizedRecord],
        catalog: CatalogIndex,
    ) -> List[AnomalyFinding]:
        """Operations whose burst density reaches the high-activity rate."""
        by_operation = partition(records, normalized, by_attribute("operation_id"))
        window = self._cfg.burst_window_seconds
        findings: List[AnomalyFinding] = []
        for op in report.operations:
            key: GroupKey = None if op.is_unknown else op.name
            recs, norms = by_operation.get(key, ([], []))
            times = [n.epoch_ms for n in norms if n.epoch_ms is not None]
            burst = max_burst_rate(times, window)
            if burst < self._cfg.high_activity_threshold:
                continue
            scope = operation_scope(key)
            details: Dict[str, Any] = {
                "max_burst_frequency": f"{burst:.2f} requests/second",
                "requests_per_second": burst,
                "percent_of_rate_limit": f"{burst / self._cfg.api_rate_limit * 100:.2f}%",
                "is_paginating": detect_pagination(recs, norms),
                "scope": scope,
                "is_high_activity": True,
            }
            if key is not None and scope in ("device", "network"):
                alternative = find_organization_alternative(key, catalog)
                if alternative is not None:
                    details["recommended_alternative"] = alternative.operation_id
            findings.append(AnomalyFinding(
                type=AnomalyType.HIGH_ACTIVITY,
                entity_type="Operation",
                entity_name=op.name,
                details=details,
            ))
        return findings

    def busiest_hours(self, report: MetricsReport) -> List[AnomalyFinding]:
        """Top hour buckets by volume; always reported."""
        top = sorted(report.hourly_activity, key=lambda m: (-m.total, _start_hour(m.name)))
        return [
            AnomalyFinding(
                type=AnomalyType.BUSIEST_HOURS,
                entity_type="BusyHour",
                entity_name=hour.name,
                details={
                    "total_requests": hour.total,
                    "success_rate": hour.success_rate,
                    "user_agents": [
                        p.user_agent for p in report.applications
                        if any(h.name == hour.name for h in p.hourly_activity)
                    ],
                    "source_addresses": list(
                        report.source_addresses_by_hour.get(hour.name, []),
                    ),
                },
            )
            for hour in top[: self._cfg.busiest_hours_count]
        ]

    def off_peak_activity(self, report: MetricsReport) -> List[AnomalyFinding]:
        """Hour buckets outside business hours above the traffic threshold."""
        start, end = self._cfg.peak_start_hour, self._cfg.peak_end_hour
        findings: List[AnomalyFinding] = []
        for hour in report.hourly_activity:
            h = hour_from_key(hour.name)
            if h is None or start <= h < end:
                continue
            if hour.total <= self._cfg.traffic_threshold:
                continue
            findings.append(AnomalyFinding(
                type=AnomalyType.OFF_PEAK_ACTIVITY,
                entity_type="Hour",
                entity_name=hour.name,
                details={
                    "total_requests": hour.total,
                    "success_rate": hour.success_rate,
                    "threshold": self._cfg.traffic_threshold,
                    "peak_window": f"{start:02d}:00 - {end:02d}:00",
                },
            ))
        return findings


def _agents_calling(report: MetricsReport, op: OperationMetric) -> List[str]:
    return [
        p.user_agent for p in report.applications
        if any(o.name == op.name and o.is_unknown == op.is_unknown for o in p.operations)
    ]


def _start_hour(hour_key: str) -> int:
    h = hour_from_key(hour_key)
    return 24 if h is None else h
