"""FastAPI application factory — routers, CORS, request logging, error mapping."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import InputShapeError
from ..telemetry import get_logger
from .dependencies import get_config, init_dependencies, shutdown_dependencies
from .routes import health, metrics

_logger = get_logger("apimetrics.api")

CORRELATION_HEADER = "X-Correlation-ID"


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_dependencies()
    cfg = get_config()
    _logger.info(
        "API started (catalog %s, summary limit %d)",
        "enabled" if cfg.enable_catalog else "disabled",
        cfg.summary_limit,
    )
    yield
    shutdown_dependencies()


async def _input_shape_handler(request: Request, exc: InputShapeError) -> JSONResponse:
    _logger.warning("Rejected batch on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "index": exc.index},
    )


async def _log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Log method, path, status and duration; echo or mint a correlation id."""
    start = time.monotonic()
    correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
    try:
        response = await call_next(request)
    except Exception:
        _logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        response = JSONResponse(status_code=500, content={"detail": "Internal server error"})
    elapsed = (time.monotonic() - start) * 1000
    _logger.info(
        "%s %s → %s (%.1fms) cid=%s",
        request.method, request.url.path, response.status_code, elapsed, correlation_id,
    )
    response.headers[CORRELATION_HEADER] = correlation_id
    return response


def create_app(cors_origins: Optional[Sequence[str]] = ("*",)) -> FastAPI:
    """Build the metrics API.

    Args:
        cors_origins: Allowed CORS origins.  ``None`` or empty disables
            the CORS middleware.
    """
    app = FastAPI(
        title="API Metrics Engine",
        version="1.0.0",
        description="Aggregates API request and webhook delivery logs into metrics reports.",
        lifespan=_lifespan,
    )
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.middleware("http")(_log_requests)
    app.add_exception_handler(InputShapeError, _input_shape_handler)  # type: ignore[arg-type]

    app.include_router(metrics.router, prefix="/api/v1/metrics")
    app.include_router(health.router, prefix="/api/v1/health")
    return app


app = create_app()
