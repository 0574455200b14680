"""Webhook delivery analyzer — URL, network, alert type, time and receiver breakdowns."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

from ..schema import (
    DeliveryRecord,
    HostStats,
    OverallStats,
    WebhookMeta,
    WebhookReport,
    key_label,
)
from ..telemetry import get_logger
from .grouping import by_attribute, by_day, group_and_count, to_sorted_metrics
from .normalizer import NormalizedRecord, batch_window

_logger = get_logger(__name__)


def delivery_hour_key(_record: DeliveryRecord, norm: NormalizedRecord) -> Optional[str]:
    """Hour bucket qualified by date, e.g. ``"2024-03-01 14:00"``."""
    if norm.local is None:
        return None
    return f"{norm.day_key} {norm.local.hour}:00"


def delivery_host(record: DeliveryRecord, _norm: NormalizedRecord) -> Optional[str]:
    """Hostname of the receiving URL, or ``None`` when it has none."""
    if not record.url:
        return None
    try:
        return urlparse(record.url).hostname
    except ValueError:
        return None


class WebhookAnalyzer:
    """Aggregate a batch of webhook deliveries into a :class:`WebhookReport`."""

    def analyze(
        self,
        deliveries: Sequence[DeliveryRecord],
        normalized: Sequence[NormalizedRecord],
    ) -> WebhookReport:
        """Run every delivery dimension over the batch.

        Args:
            deliveries: Delivery records.
            normalized: Normalizer output aligned with *deliveries*.
        """
        timespan_ms, start, end, invalid = batch_window(normalized)
        if invalid:
            _logger.warning("%d delivery record(s) with unparseable sentAt", invalid)
        succeeded = sum(1 for n in normalized if n.is_success)

        return WebhookReport(
            urls=to_sorted_metrics(
                group_and_count(deliveries, normalized, by_attribute("url")),
            ),
            networks=to_sorted_metrics(
                group_and_count(deliveries, normalized, by_attribute("network_id")),
            ),
            alert_types=to_sorted_metrics(
                group_and_count(deliveries, normalized, by_attribute("alert_type")),
            ),
            hourly_activity=to_sorted_metrics(
                group_and_count(deliveries, normalized, delivery_hour_key, drop_missing=True),
            ),
            daily_activity=to_sorted_metrics(
                group_and_count(deliveries, normalized, by_day, drop_missing=True),
            ),
            http_servers=self.http_servers(deliveries, normalized),
            meta=WebhookMeta(
                count=len(deliveries),
                timespan_ms=timespan_ms,
                start_time=start,
                end_time=end,
                invalid_timestamps=invalid,
                overall=OverallStats(
                    total_success=succeeded,
                    total_failure=len(normalized) - succeeded,
                ),
            ),
        )

    def http_servers(
        self,
        deliveries: Sequence[DeliveryRecord],
        normalized: Sequence[NormalizedRecord],
    ) -> List[HostStats]:
        """Per-receiver outcome counts and mean response durations, by hostname."""
        durations: Dict[Optional[str], List[List[float]]] = {}
        counts: Dict[Optional[str], List[int]] = {}
        for record, norm in zip(deliveries, normalized):
            host = delivery_host(record, norm) or None
            tally = counts.setdefault(host, [0, 0])
            samples = durations.setdefault(host, [[], []])
            slot = 0 if norm.is_success else 1
            tally[slot] += 1
            if record.response_duration is not None:
                samples[slot].append(record.response_duration)

        servers = [
            HostStats(
                hostname=key_label(host),
                success=success,
                failure=failure,
                avg_success_duration=_mean(durations[host][0]),
                avg_failure_duration=_mean(durations[host][1]),
            )
            for host, (success, failure) in counts.items()
        ]
        return sorted(servers, key=lambda s: s.hostname)


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)
