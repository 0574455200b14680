"""Health-check endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends

from ...config import MetricsConfig
from ..dependencies import get_config
from ..models import HealthResponse

router = APIRouter(tags=["health"])

_started = time.monotonic()


@router.get("/", response_model=HealthResponse, summary="Service health check")
def health(config: MetricsConfig = Depends(get_config)) -> HealthResponse:
    """Report liveness and where the operation catalog comes from."""
    return HealthResponse(
        catalog="enabled" if config.enable_catalog else "disabled",
        catalog_url=config.catalog_url if config.enable_catalog else None,
        uptime=round(time.monotonic() - _started, 2),
    )
