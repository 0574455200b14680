"""Tests for apimetrics.analysis.normalizer."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from apimetrics.analysis.normalizer import (
    batch_window,
    format_hour_key,
    hour_from_key,
    is_success_code,
    normalize,
    normalize_batch,
    parse_timestamp,
)
from apimetrics.schema import INVALID_TIMESTAMP, DeliveryRecord, RequestRecord


class TestSuccessCode:
    @pytest.mark.parametrize("code", [200, 201, 204, 299])
    def test_2xx_is_success(self, code: int) -> None:
        assert is_success_code(code) is True

    @pytest.mark.parametrize("code", [None, 199, 300, 404, 429, 500])
    def test_everything_else_is_failure(self, code) -> None:
        assert is_success_code(code) is False


class TestParseTimestamp:
    def test_iso_with_z(self) -> None:
        parsed = parse_timestamp("2024-03-01T14:05:00Z")
        assert parsed == datetime(2024, 3, 1, 14, 5, tzinfo=timezone.utc)

    def test_iso_with_offset_converted_to_utc(self) -> None:
        parsed = parse_timestamp("2024-03-01T16:05:00+02:00")
        assert parsed == datetime(2024, 3, 1, 14, 5, tzinfo=timezone.utc)

    def test_naive_treated_as_utc(self) -> None:
        parsed = parse_timestamp("2024-03-01T14:05:00")
        assert parsed is not None
        assert parsed.tzinfo is not None
        assert parsed.hour == 14

    def test_epoch_milliseconds(self) -> None:
        assert parse_timestamp(1_000) == datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not-a-date", True])
    def test_unparseable_returns_none(self, value) -> None:
        assert parse_timestamp(value) is None


class TestNormalize:
    def test_hour_and_day_keys(self) -> None:
        rec = RequestRecord(ts="2024-03-01T14:05:00Z", responseCode=200)
        norm = normalize(rec, utc_offset_minutes=0)
        assert norm.is_success is True
        assert norm.hour_key == "14:00 - 15:00"
        assert norm.day_key == "2024-03-01"

    def test_offset_shifts_buckets(self) -> None:
        rec = RequestRecord(ts="2024-03-01T14:05:00Z", responseCode=500)
        norm = normalize(rec, utc_offset_minutes=-15 * 60)
        assert norm.is_success is False
        assert norm.hour_key == "23:00 - 24:00"
        assert norm.day_key == "2024-02-29"

    def test_midnight_label_is_unpadded(self) -> None:
        local = datetime(2024, 3, 1, 0, 30, tzinfo=timezone.utc)
        assert format_hour_key(local) == "0:00 - 1:00"

    def test_unparseable_timestamp_keeps_success_flag(self) -> None:
        rec = RequestRecord(ts="garbage", responseCode=204)
        norm = normalize(rec, utc_offset_minutes=0)
        assert norm.is_success is True
        assert norm.hour_key is None
        assert norm.day_key is None
        assert norm.epoch_ms is None

    def test_delivery_uses_sent_at(self) -> None:
        rec = DeliveryRecord(sentAt="2024-03-01T09:00:00Z", loggedAt="2024-03-02T09:00:00Z")
        norm = normalize(rec, utc_offset_minutes=0)
        assert norm.day_key == "2024-03-01"

    def test_batch_preserves_order(self) -> None:
        recs = [
            RequestRecord(ts="2024-03-01T01:00:00Z", responseCode=200),
            RequestRecord(ts="2024-03-01T02:00:00Z", responseCode=500),
        ]
        norms = normalize_batch(recs, utc_offset_minutes=0)
        assert [n.hour_key for n in norms] == ["1:00 - 2:00", "2:00 - 3:00"]


class TestHourFromKey:
    def test_request_hour_label(self) -> None:
        assert hour_from_key("14:00 - 15:00") == 14

    def test_not_an_hour_label(self) -> None:
        assert hour_from_key("2024-03-01 14:00") is None


class TestBatchWindow:
    def test_span_and_iso_bounds(self) -> None:
        recs = [
            RequestRecord(ts="2024-03-01T14:00:01Z"),
            RequestRecord(ts="2024-03-01T14:00:00Z"),
            RequestRecord(ts="bogus"),
        ]
        timespan, start, end, invalid = batch_window(normalize_batch(recs, 0))
        assert timespan == 1000
        assert start == "2024-03-01T14:00:00.000Z"
        assert end == "2024-03-01T14:00:01.000Z"
        assert invalid == 1

    def test_empty_batch(self) -> None:
        assert batch_window([]) == (0, INVALID_TIMESTAMP, INVALID_TIMESTAMP, 0)
