"""API-specific Pydantic v2 request / response models."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class RequestMetricsBody(BaseModel):
    """POST /api/v1/metrics/requests request body."""
    model_config = ConfigDict(frozen=True)

    records: Any = Field(
        ..., description="API request log records (list of objects).",
    )
    roster: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Actor roster entries with id, name and email.",
    )


class WebhookMetricsBody(BaseModel):
    """POST /api/v1/metrics/webhooks request body."""
    model_config = ConfigDict(frozen=True)

    deliveries: Any = Field(
        ..., description="Webhook delivery log records (list of objects).",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    """GET /api/v1/health response."""
    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    catalog: str = "enabled"
    catalog_url: Optional[str] = None
    version: str = "1.0.0"
    uptime: float = 0.0
