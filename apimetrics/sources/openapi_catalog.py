"""Operation catalog sources — OpenAPI document fetch and static fallback."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from ..config import DEFAULT_CATALOG_URL
from ..schema import OperationCatalogEntry
from ..telemetry import catalog_fetch_failures_total, get_logger

_logger = get_logger(__name__)


class CatalogSource(Protocol):
    """Anything that can produce the operation catalog for one report build."""

    async def fetch(self) -> List[OperationCatalogEntry]:
        ...


def parse_openapi(document: Dict[str, Any]) -> List[OperationCatalogEntry]:
    """Collect every operation that declares an ``operationId``.

    Args:
        document: Decoded OpenAPI 3 document.

    Returns:
        Catalog entries in document order.
    """
    entries: List[OperationCatalogEntry] = []
    for path, path_item in (document.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if not isinstance(operation, dict) or not operation.get("operationId"):
                continue
            entries.append(OperationCatalogEntry(
                operation_id=operation["operationId"],
                description=operation.get("description") or "",
                deprecated=bool(operation.get("deprecated", False)),
                tags=list(operation.get("tags") or []),
                path=path,
                method=method.upper(),
            ))
    return entries


class OpenAPICatalogSource:
    """Fetch and parse a remote OpenAPI document with ``httpx``.

    Any transport, status or decoding failure yields an empty catalog;
    the failure is logged and counted but never raised.

    Args:
        url: Location of the OpenAPI JSON document.
        timeout: Request timeout in seconds.
        transport: Optional ``httpx`` transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        url: str = DEFAULT_CATALOG_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport
        self.last_error: Optional[str] = None

    async def fetch(self) -> List[OperationCatalogEntry]:
        self.last_error = None
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                response = await client.get(self._url)
                response.raise_for_status()
                document = response.json()
            entries = parse_openapi(document)
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as exc:
            self.last_error = str(exc)
            catalog_fetch_failures_total.inc()
            _logger.warning("Operation catalog unavailable from %s: %s", self._url, exc)
            return []
        _logger.info("Loaded %d catalog operation(s) from %s", len(entries), self._url)
        return entries


class StaticCatalogSource:
    """Serve a fixed catalog, e.g. loaded from disk or built in tests."""

    def __init__(self, entries: Sequence[Any] = ()) -> None:
        self._entries = [
            e if isinstance(e, OperationCatalogEntry)
            else OperationCatalogEntry.model_validate(e)
            for e in entries
        ]

    async def fetch(self) -> List[OperationCatalogEntry]:
        return list(self._entries)
