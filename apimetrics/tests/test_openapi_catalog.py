"""Tests for apimetrics.sources (catalog and record sources)."""

from __future__ import annotations

import httpx
import pytest

from apimetrics.schema import OperationCatalogEntry
from apimetrics.sources.openapi_catalog import OpenAPICatalogSource, StaticCatalogSource, parse_openapi
from apimetrics.sources.record_source import StaticRecordSource
from apimetrics.telemetry import registry

CATALOG_URL = "https://catalog.example.com/openapi.json"

DOCUMENT = {
    "openapi": "3.0.1",
    "paths": {
        "/organizations/{organizationId}/devices": {
            "get": {
                "operationId": "getOrganizationDevices",
                "description": "List the devices in an organization",
                "tags": ["organizations", "configure"],
            },
            "parameters": [{"name": "organizationId", "in": "path"}],
        },
        "/networks/{networkId}/legacy": {
            "get": {"operationId": "getNetworkLegacy", "deprecated": True},
            "post": {"summary": "no operation id"},
        },
        "/devices/{serial}/preview": {
            "put": {"operationId": "updateDevicePreview", "tags": ["beta"]},
        },
    },
}


def _failures() -> float:
    return registry.get_sample_value("apimetrics_catalog_fetch_failures_total") or 0.0


def _source(handler) -> OpenAPICatalogSource:
    return OpenAPICatalogSource(CATALOG_URL, timeout=5.0, transport=httpx.MockTransport(handler))


class TestParseOpenAPI:
    def test_collects_operations_in_document_order(self) -> None:
        entries = parse_openapi(DOCUMENT)
        assert [e.operation_id for e in entries] == [
            "getOrganizationDevices", "getNetworkLegacy", "updateDevicePreview",
        ]

    def test_entry_fields(self) -> None:
        devices, legacy, preview = parse_openapi(DOCUMENT)
        assert devices.path == "/organizations/{organizationId}/devices"
        assert devices.method == "GET"
        assert devices.description == "List the devices in an organization"
        assert legacy.deprecated is True
        assert preview.is_beta is True
        assert preview.method == "PUT"

    def test_document_without_paths(self) -> None:
        assert parse_openapi({"openapi": "3.0.1"}) == []
        assert parse_openapi({"paths": None}) == []


class TestOpenAPICatalogSource:
    @pytest.mark.asyncio
    async def test_fetch_success(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == CATALOG_URL
            return httpx.Response(200, json=DOCUMENT)

        source = _source(handler)
        entries = await source.fetch()
        assert len(entries) == 3
        assert source.last_error is None

    @pytest.mark.asyncio
    async def test_http_error_degrades(self) -> None:
        before = _failures()
        source = _source(lambda request: httpx.Response(500, text="boom"))
        assert await source.fetch() == []
        assert source.last_error
        assert _failures() == before + 1

    @pytest.mark.asyncio
    async def test_invalid_json_degrades(self) -> None:
        source = _source(lambda request: httpx.Response(200, text="<html>not json</html>"))
        assert await source.fetch() == []

    @pytest.mark.asyncio
    async def test_non_object_document_degrades(self) -> None:
        source = _source(lambda request: httpx.Response(200, json=["not", "a", "document"]))
        assert await source.fetch() == []

    @pytest.mark.asyncio
    async def test_connection_error_degrades(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        before = _failures()
        assert await _source(handler).fetch() == []
        assert _failures() == before + 1


class TestStaticSources:
    @pytest.mark.asyncio
    async def test_static_catalog_accepts_dicts_and_models(self) -> None:
        model = OperationCatalogEntry(operation_id="getA")
        source = StaticCatalogSource([model, {"operationId": "getB", "deprecated": True}])
        entries = await source.fetch()
        assert [e.operation_id for e in entries] == ["getA", "getB"]
        assert entries[1].deprecated is True

    @pytest.mark.asyncio
    async def test_static_catalog_returns_copy(self) -> None:
        source = StaticCatalogSource([{"operationId": "getA"}])
        (await source.fetch()).clear()
        assert len(await source.fetch()) == 1

    @pytest.mark.asyncio
    async def test_static_record_source(self) -> None:
        source = StaticRecordSource(
            api_requests=[{"operationId": "getA"}],
            webhook_logs=[{"url": "https://h.example.com"}],
        )
        assert await source.fetch_api_requests("org_1") == [{"operationId": "getA"}]
        assert await source.fetch_webhook_logs("org_1", timespan=3600) == [
            {"url": "https://h.example.com"},
        ]
        assert await StaticRecordSource().fetch_api_requests("org_1") == []
