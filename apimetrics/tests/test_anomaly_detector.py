"""Tests for apimetrics.analysis.anomaly_detector."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

import pytest

from apimetrics.analysis.anomaly_detector import AnomalyDetector
from apimetrics.analysis.enricher import CatalogIndex
from apimetrics.analysis.normalizer import normalize_batch
from apimetrics.config import MetricsConfig
from apimetrics.report_builder import MetricsReportBuilder
from apimetrics.schema import AnomalyFinding, AnomalyType, RequestRecord
from apimetrics.sources.openapi_catalog import StaticCatalogSource


def _ts(hour: int, minute: int = 0, second: int = 0, ms: int = 0) -> str:
    return f"2024-03-01T{hour:02d}:{minute:02d}:{second:02d}.{ms:03d}Z"


def _rec(ts: str, code: int = 200, **overrides: Any) -> RequestRecord:
    fields: Dict[str, Any] = {
        "ts": ts,
        "adminId": "a1",
        "sourceIp": "10.0.0.1",
        "operationId": "getX",
        "userAgent": "A",
        "responseCode": code,
    }
    fields.update(overrides)
    return RequestRecord(**fields)


def _detect(
    records: Sequence[RequestRecord],
    config: MetricsConfig | None = None,
    catalog: Sequence[Dict[str, Any]] = (),
) -> List[AnomalyFinding]:
    cfg = config or MetricsConfig(utc_offset_minutes=0, enable_catalog=False)
    builder = MetricsReportBuilder(cfg, catalog_source=StaticCatalogSource())
    entries = CatalogIndex(catalog)
    report = builder.assemble(list(records), list(entries))
    return AnomalyDetector(cfg).detect(
        report, records, normalize_batch(records, cfg.utc_offset_minutes), entries,
    )


def _types(findings: List[AnomalyFinding]) -> List[AnomalyType]:
    return [f.type for f in findings]


class TestHighFailureRate:
    def test_fifty_percent_does_not_fire(self) -> None:
        findings = _detect([_rec(_ts(10)), _rec(_ts(10, 5), code=500)])
        assert AnomalyType.HIGH_FAILURE_RATE not in _types(findings)

    def test_zero_percent_fires_for_every_dimension(self) -> None:
        findings = _detect([_rec(_ts(10), code=500)])
        failing = [f for f in findings if f.type is AnomalyType.HIGH_FAILURE_RATE]
        assert [f.entity_type for f in failing] == [
            "Actor", "Agent", "Operation", "SourceAddress", "Hour", "Day",
        ]
        assert failing[2].entity_name == "getX"
        assert failing[2].details["success_rate"] == "0.00%"

    def test_two_thirds_does_not_fire(self) -> None:
        findings = _detect([_rec(_ts(10)), _rec(_ts(10, 1)), _rec(_ts(10, 2), code=500)])
        assert AnomalyType.HIGH_FAILURE_RATE not in _types(findings)


class TestCatalogRules:
    CATALOG = [
        {"operationId": "getOld", "deprecated": True, "description": "Old"},
        {"operationId": "getUnused", "deprecated": True},
        {"operationId": "getPreview", "tags": ["beta"]},
    ]

    def test_deprecated_operation_lists_agents(self) -> None:
        findings = _detect(
            [_rec(_ts(10), operationId="getOld", userAgent="legacy-script")],
            catalog=self.CATALOG,
        )
        deprecated = [f for f in findings if f.type is AnomalyType.DEPRECATED_OPERATION]
        assert [f.entity_name for f in deprecated] == ["getOld"]
        assert deprecated[0].details["user_agents"] == ["legacy-script"]

    def test_beta_operation(self) -> None:
        findings = _detect([_rec(_ts(10), operationId="getPreview")], catalog=self.CATALOG)
        beta = [f for f in findings if f.type is AnomalyType.BETA_OPERATION]
        assert [f.entity_name for f in beta] == ["getPreview"]
        assert AnomalyType.NO_ANOMALIES not in _types(findings)


class TestTrafficRules:
    def test_high_traffic_pair(self) -> None:
        agent = "python-requests/2.31 (automation-host-with-a-long-name)"
        recs = [_rec(_ts(10, 0, s * 2), userAgent=agent) for s in range(4)]
        cfg = MetricsConfig(utc_offset_minutes=0, traffic_threshold=3, enable_catalog=False)
        findings = _detect(recs, cfg)
        (traffic,) = [f for f in findings if f.type is AnomalyType.HIGH_TRAFFIC]
        assert traffic.entity_type == "IPUserAgent"
        assert traffic.entity_name == f"10.0.0.1|{agent[:40]}..."
        assert traffic.details["total_requests"] == 4

    def test_high_activity_burst(self) -> None:
        recs = [_rec(_ts(10, 0, 0, ms), operationId="getNetworkClients") for ms in range(0, 500, 100)]
        catalog = [{
            "operationId": "getOrganizationClientsOverview",
            "path": "/organizations/{organizationId}/clients/overview",
        }]
        findings = _detect(recs, catalog=catalog)
        (burst,) = [f for f in findings if f.type is AnomalyType.HIGH_ACTIVITY]
        assert burst.entity_name == "getNetworkClients"
        assert burst.details["requests_per_second"] == 5.0
        assert burst.details["percent_of_rate_limit"] == "50.00%"
        assert burst.details["scope"] == "network"
        assert burst.details["recommended_alternative"] == "getOrganizationClientsOverview"

    def test_spread_out_requests_are_not_a_burst(self) -> None:
        recs = [_rec(_ts(10, 0, s)) for s in range(6)]
        assert AnomalyType.HIGH_ACTIVITY not in _types(_detect(recs))

    def test_off_peak_activity(self) -> None:
        cfg = MetricsConfig(utc_offset_minutes=0, traffic_threshold=2, enable_catalog=False)
        recs = [_rec(_ts(2, m)) for m in range(3)] + [_rec(_ts(10, m)) for m in range(3)]
        findings = _detect(recs, cfg)
        off_peak = [f for f in findings if f.type is AnomalyType.OFF_PEAK_ACTIVITY]
        assert [f.entity_name for f in off_peak] == ["2:00 - 3:00"]


class TestBusiestHours:
    def test_top_three_by_volume(self) -> None:
        recs = (
            [_rec(_ts(9, m)) for m in range(4)]
            + [_rec(_ts(11, m)) for m in range(3)]
            + [_rec(_ts(13, m)) for m in range(2)]
            + [_rec(_ts(15))]
        )
        busy = [f for f in _detect(recs) if f.type is AnomalyType.BUSIEST_HOURS]
        assert [f.entity_name for f in busy] == ["9:00 - 10:00", "11:00 - 12:00", "13:00 - 14:00"]
        assert busy[0].entity_type == "BusyHour"
        assert busy[0].details["source_addresses"] == ["10.0.0.1"]
        assert busy[0].details["user_agents"] == ["A"]

    def test_ties_resolved_by_start_hour_regardless_of_input_order(self) -> None:
        chronological = [_rec(_ts(h)) for h in (9, 10, 11, 12)]
        expected = ["9:00 - 10:00", "10:00 - 11:00", "11:00 - 12:00"]
        for recs in (chronological, list(reversed(chronological))):
            busy = [f for f in _detect(recs) if f.type is AnomalyType.BUSIEST_HOURS]
            assert [f.entity_name for f in busy] == expected


class TestNoAnomalies:
    def test_all_clear_sentinel(self) -> None:
        findings = _detect([_rec(_ts(10)), _rec(_ts(11))])
        assert _types(findings).count(AnomalyType.NO_ANOMALIES) == 1
        assert findings[-1].entity_type == "System"
        assert findings[-1].entity_name == "All"

    def test_busiest_hours_do_not_suppress_sentinel(self) -> None:
        findings = _detect([_rec(_ts(10))])
        assert _types(findings) == [AnomalyType.BUSIEST_HOURS, AnomalyType.NO_ANOMALIES]

    def test_empty_batch(self) -> None:
        assert _types(_detect([])) == [AnomalyType.NO_ANOMALIES]

    def test_sentinel_absent_when_rule_fires(self) -> None:
        assert AnomalyType.NO_ANOMALIES not in _types(_detect([_rec(_ts(10), code=500)]))


class TestDetectorPurity:
    def test_report_not_mutated(self) -> None:
        cfg = MetricsConfig(utc_offset_minutes=0, enable_catalog=False)
        recs = [_rec(_ts(10), code=500), _rec(_ts(11))]
        report = MetricsReportBuilder(cfg, StaticCatalogSource()).assemble(recs)
        before = report.model_dump()
        AnomalyDetector(cfg).detect(report, recs, normalize_batch(recs, 0), CatalogIndex())
        assert report.model_dump() == before

    @pytest.mark.parametrize("rule", [
        "high_failure_rate", "deprecated_operations", "beta_operations", "busiest_hours",
        "off_peak_activity",
    ])
    def test_report_rules_on_empty_report(self, rule: str) -> None:
        cfg = MetricsConfig(utc_offset_minutes=0, enable_catalog=False)
        report = MetricsReportBuilder(cfg, StaticCatalogSource()).assemble([])
        assert getattr(AnomalyDetector(cfg), rule)(report) == []
