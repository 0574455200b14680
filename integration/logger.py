"""Structured CLI logging with correlation IDs via *structlog*.

Engine modules log through stdlib loggers under ``apimetrics``; the CLI
logs through structlog.  :func:`setup_logging` sets the level for both.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

_CONFIGURED = False

_ENGINE_LOGGER = "apimetrics"


# ── correlation ids ────────────────────────────────────────────────


def new_correlation_id() -> str:
    """Generate and store a new correlation ID for the current context."""
    cid = str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str:
    """Return the current context's correlation ID (empty if unset)."""
    return _correlation_id.get()


def _add_correlation_id(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    cid = _correlation_id.get()
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _stderr_logger(*_args: Any) -> structlog.PrintLogger:
    # stderr is looked up per logger, not at configure time.
    return structlog.PrintLogger(sys.stderr)


# ── setup ──────────────────────────────────────────────────────────


def setup_logging(log_level: str = "INFO", json_output: Optional[bool] = None) -> None:
    """Configure *structlog* and the engine's stdlib loggers.

    The engine level is applied on every call; structlog itself is only
    configured once.

    Args:
        log_level: One of ``DEBUG``, ``INFO``, ``WARNING``, ``ERROR``.
        json_output: Force JSON rendering.  Defaults to JSON unless
            stderr is a terminal.
    """
    global _CONFIGURED  # noqa: PLW0603
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger(_ENGINE_LOGGER).setLevel(numeric_level)
    if _CONFIGURED:
        return
    _CONFIGURED = True

    if json_output is None:
        json_output = not sys.stderr.isatty()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_correlation_id,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if json_output
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger, optionally named *name*."""
    log = structlog.get_logger()
    if name:
        log = log.bind(logger=name)
    return log
