"""Record sources — the boundary to whatever fetches log batches."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence


class RecordSource(Protocol):
    """Supplies already-paginated request and delivery batches.

    Retry on rate limiting and link-header pagination belong to the
    implementation; the engine only consumes the finished lists.
    """

    async def fetch_api_requests(
        self, org_id: str, timespan: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    async def fetch_webhook_logs(
        self, org_id: str, timespan: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...


class StaticRecordSource:
    """Serve pre-loaded batches regardless of organization or timespan."""

    def __init__(
        self,
        api_requests: Sequence[Dict[str, Any]] = (),
        webhook_logs: Sequence[Dict[str, Any]] = (),
    ) -> None:
        self._api_requests = list(api_requests)
        self._webhook_logs = list(webhook_logs)

    async def fetch_api_requests(
        self, org_id: str, timespan: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return list(self._api_requests)

    async def fetch_webhook_logs(
        self, org_id: str, timespan: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return list(self._webhook_logs)
