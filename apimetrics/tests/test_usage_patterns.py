"""Tests for apimetrics.analysis.usage_patterns."""

from __future__ import annotations

from typing import List, Optional

import pytest

from apimetrics.analysis.enricher import CatalogIndex
from apimetrics.analysis.normalizer import normalize_batch
from apimetrics.analysis.usage_patterns import (
    detect_pagination,
    find_organization_alternative,
    identify_scheduled_patterns,
    max_burst_rate,
    operation_scope,
    source_addresses_by_hour,
    truncate_agent,
)
from apimetrics.schema import RequestRecord


def _at(epoch_ms: List[int], query: Optional[str] = None) -> List[RequestRecord]:
    return [RequestRecord(ts=t, responseCode=200, queryString=query) for t in epoch_ms]


class TestTruncateAgent:
    def test_long_agent_truncated(self) -> None:
        assert truncate_agent("a" * 41) == "a" * 40 + "..."

    def test_short_agent_unchanged(self) -> None:
        assert truncate_agent("a" * 40) == "a" * 40


class TestMaxBurstRate:
    def test_window_is_half_open(self) -> None:
        assert max_burst_rate([0, 100, 200, 999, 1000]) == 4.0

    def test_unsorted_input(self) -> None:
        assert max_burst_rate([1000, 0, 999, 200, 100]) == 4.0

    def test_wider_window_divides_by_width(self) -> None:
        assert max_burst_rate([0, 100, 200, 999, 1000], window_seconds=2.0) == 2.5

    def test_empty(self) -> None:
        assert max_burst_rate([]) == 0.0


class TestDetectPagination:
    def test_regular_intervals_with_page_params(self) -> None:
        recs = _at([0, 1000, 2000, 3000, 4000, 5000], query="perPage=1000&startingAfter=x")
        assert detect_pagination(recs, normalize_batch(recs, 0)) is True

    def test_no_page_params(self) -> None:
        recs = _at([0, 1000, 2000, 3000, 4000, 5000])
        assert detect_pagination(recs, normalize_batch(recs, 0)) is False

    def test_irregular_intervals(self) -> None:
        recs = _at([0, 100, 1100, 3000, 7000], query="perPage=10")
        assert detect_pagination(recs, normalize_batch(recs, 0)) is False


class TestOperationScope:
    @pytest.mark.parametrize(
        ("op", "scope"),
        [
            ("getAdministeredIdentitiesMe", "administered"),
            ("getOrganizationNetworks", "organization"),
            ("getNetworkDevices", "network"),
            ("getDeviceClients", "device"),
            ("listThings", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_scope(self, op, scope) -> None:
        assert operation_scope(op) == scope


class TestOrganizationAlternative:
    @pytest.fixture
    def catalog(self) -> CatalogIndex:
        return CatalogIndex([
            {"operationId": "getNetworkClients", "path": "/networks/{networkId}/clients"},
            {"operationId": "getOrganizationClientsOverview",
             "path": "/organizations/{organizationId}/clients/overview"},
            {"operationId": "getOrganizationStatuses",
             "path": "/networks/{networkId}/statuses"},
        ])

    def test_finds_org_scoped_operation(self, catalog) -> None:
        alt = find_organization_alternative("getNetworkClients", catalog)
        assert alt is not None
        assert alt.operation_id == "getOrganizationClientsOverview"

    def test_path_must_be_org_scoped(self, catalog) -> None:
        assert find_organization_alternative("getDeviceStatuses", catalog) is None

    def test_unscoped_operation(self, catalog) -> None:
        assert find_organization_alternative("getOrganizationClientsOverview", catalog) is None


class TestScheduledPatterns:
    def test_peak_minutes_per_agent(self) -> None:
        recs = [
            RequestRecord(ts=f"2024-03-01T02:00:{s:02d}Z", userAgent="cron", responseCode=200)
            for s in (1, 2, 3)
        ] + [
            RequestRecord(ts=f"2024-03-01T14:00:{s:02d}Z", userAgent="cron", responseCode=500)
            for s in (1, 2, 3)
        ] + [
            RequestRecord(ts="2024-03-01T09:13:00Z", userAgent="human", responseCode=200),
        ]
        patterns = identify_scheduled_patterns(recs, normalize_batch(recs, 0), traffic_threshold=2880)
        assert len(patterns) == 1
        (cron,) = patterns
        assert cron.user_agent == "cron"
        assert [p.time for p in cron.peak_times] == ["02:00", "14:00"]
        assert cron.potential_schedule == "Every 720 min"
        assert cron.total_successes == 3


class TestSourceAddressesByHour:
    def test_distinct_first_seen(self) -> None:
        recs = [
            RequestRecord(ts="2024-03-01T10:00:00Z", sourceIp="b"),
            RequestRecord(ts="2024-03-01T10:05:00Z", sourceIp="a"),
            RequestRecord(ts="2024-03-01T10:06:00Z", sourceIp="b"),
            RequestRecord(ts="bad", sourceIp="c"),
        ]
        assert source_addresses_by_hour(recs, normalize_batch(recs, 0)) == {
            "10:00 - 11:00": ["b", "a"],
        }
