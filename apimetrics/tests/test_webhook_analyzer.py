"""Tests for apimetrics.analysis.webhook_analyzer."""

from __future__ import annotations

from typing import List

import pytest

from apimetrics.analysis.normalizer import normalize, normalize_batch
from apimetrics.analysis.webhook_analyzer import WebhookAnalyzer, delivery_host, delivery_hour_key
from apimetrics.schema import INVALID_TIMESTAMP, DeliveryRecord


@pytest.fixture
def deliveries() -> List[DeliveryRecord]:
    return [
        DeliveryRecord(sentAt="2024-03-01T14:05:00Z", networkId="N_1", alertType="Motion detected",
                       url="https://hooks.example.com/a", responseCode=200, responseDuration=120),
        DeliveryRecord(sentAt="2024-03-01T14:45:00Z", networkId="N_1", alertType="Motion detected",
                       url="https://hooks.example.com/a", responseCode=200, responseDuration=80),
        DeliveryRecord(sentAt="2024-03-01T15:10:00Z", networkId="N_2", alertType="Settings changed",
                       url="https://hooks.example.com/b", responseCode=502, responseDuration=3000),
        DeliveryRecord(sentAt="2024-03-02T09:00:00Z", networkId="N_2", alertType="Settings changed",
                       url="http://alerts.internal:8080/hook", responseCode=404),
        DeliveryRecord(sentAt="garbage", networkId=None, alertType="Motion detected",
                       url=None, responseCode=200, responseDuration=10),
    ]


@pytest.fixture
def report(deliveries):
    return WebhookAnalyzer().analyze(deliveries, normalize_batch(deliveries, 0))


class TestKeyExtractors:
    def test_hour_key_includes_date(self) -> None:
        d = DeliveryRecord(sentAt="2024-03-01T14:05:00Z")
        assert delivery_hour_key(d, normalize(d, 0)) == "2024-03-01 14:00"

    def test_hour_key_missing_timestamp(self) -> None:
        d = DeliveryRecord(sentAt=None)
        assert delivery_hour_key(d, normalize(d, 0)) is None

    @pytest.mark.parametrize("url,expected", [
        ("https://hooks.example.com/a?x=1", "hooks.example.com"),
        ("http://alerts.internal:8080/hook", "alerts.internal"),
        ("not a url", None),
        (None, None),
    ])
    def test_host(self, url, expected) -> None:
        d = DeliveryRecord(url=url)
        assert delivery_host(d, normalize(d, 0)) == expected


class TestWebhookAnalyzer:
    def test_urls_sorted_by_volume(self, report) -> None:
        assert [(m.name, m.total) for m in report.urls] == [
            ("https://hooks.example.com/a", 2),
            ("https://hooks.example.com/b", 1),
            ("http://alerts.internal:8080/hook", 1),
            ("unknown", 1),
        ]
        assert report.urls[-1].is_unknown is True

    def test_networks_and_alert_types(self, report) -> None:
        assert [(m.name, m.success, m.failure) for m in report.networks] == [
            ("N_1", 2, 0), ("N_2", 0, 2), ("unknown", 1, 0),
        ]
        assert report.alert_types[0].name == "Motion detected"
        assert report.alert_types[0].success_rate == "100.00%"

    def test_time_dimensions_skip_invalid_timestamps(self, report) -> None:
        assert [(m.name, m.total) for m in report.hourly_activity] == [
            ("2024-03-01 14:00", 2), ("2024-03-01 15:00", 1), ("2024-03-02 9:00", 1),
        ]
        assert [(m.name, m.total) for m in report.daily_activity] == [
            ("2024-03-01", 3), ("2024-03-02", 1),
        ]

    def test_http_servers(self, report) -> None:
        servers = {s.hostname: s for s in report.http_servers}
        assert [s.hostname for s in report.http_servers] == sorted(servers)
        hooks = servers["hooks.example.com"]
        assert (hooks.success, hooks.failure) == (2, 1)
        assert hooks.avg_success_duration == 100.0
        assert hooks.avg_failure_duration == 3000.0
        internal = servers["alerts.internal"]
        assert internal.avg_success_duration is None
        assert internal.avg_failure_duration is None
        assert servers["unknown"].success == 1

    def test_meta(self, report) -> None:
        assert report.meta.count == 5
        assert report.meta.invalid_timestamps == 1
        assert report.meta.start_time == "2024-03-01T14:05:00.000Z"
        assert report.meta.end_time == "2024-03-02T09:00:00.000Z"
        assert report.meta.timespan_ms == (18 * 60 + 55) * 60 * 1000

    def test_overall_counts_every_delivery(self, report) -> None:
        overall = report.meta.overall
        assert (overall.total_success, overall.total_failure) == (3, 2)
        assert overall.overall_success_rate == "60.00%"

    def test_empty_batch(self) -> None:
        report = WebhookAnalyzer().analyze([], [])
        assert report.urls == []
        assert report.http_servers == []
        assert report.meta.count == 0
        assert report.meta.start_time == INVALID_TIMESTAMP
        assert report.meta.overall.overall_success_rate == "0.00%"
