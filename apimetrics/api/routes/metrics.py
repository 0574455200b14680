"""Metrics report endpoints and Prometheus exposition.

Malformed batches raise :class:`~apimetrics.errors.InputShapeError`,
which the application maps to ``422``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ...report_builder import MetricsReportBuilder
from ...schema import MetricsReport, WebhookReport
from ...telemetry import registry
from ..dependencies import get_report_builder
from ..models import RequestMetricsBody, WebhookMetricsBody

router = APIRouter(tags=["metrics"])


@router.post(
    "/requests",
    response_model=MetricsReport,
    summary="Build a metrics report from API request logs",
)
async def request_metrics(
    body: RequestMetricsBody,
    builder: MetricsReportBuilder = Depends(get_report_builder),
) -> MetricsReport:
    """Aggregate request records into dimensions, profiles, summary and anomalies."""
    return await builder.build_metrics_report(body.records, roster=body.roster)


@router.post(
    "/webhooks",
    response_model=WebhookReport,
    summary="Build a metrics report from webhook delivery logs",
)
def webhook_metrics(
    body: WebhookMetricsBody,
    builder: MetricsReportBuilder = Depends(get_report_builder),
) -> WebhookReport:
    """Aggregate delivery records by URL, network, alert type, time and host."""
    return builder.build_webhook_metrics(body.deliveries)


@router.get(
    "/prometheus",
    response_class=PlainTextResponse,
    summary="Prometheus metrics",
)
def prometheus_metrics() -> PlainTextResponse:
    """Export engine metrics in text exposition format."""
    return PlainTextResponse(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
