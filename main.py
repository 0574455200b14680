"""main.py — CLI entry point for the API metrics engine.

Uses **Click** for command parsing and **Rich** for terminal output.

Usage examples::

    python main.py analyze api_requests.json --roster admins.json -f markdown -f json
    python main.py analyze api_requests.json --catalog spec3.json
    python main.py webhooks webhook_logs.json
    python main.py serve --port 8000
    python main.py validate
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import time
from typing import Any, Dict, List, Optional, Tuple

import click

from apimetrics.config import MetricsConfig
from apimetrics.errors import InputShapeError
from apimetrics.report_builder import MetricsReportBuilder
from apimetrics.schema import MetricsReport
from apimetrics.sources.openapi_catalog import CatalogSource, StaticCatalogSource, parse_openapi
from apimetrics.sources.record_source import RecordSource, StaticRecordSource
from integration.cli import (
    console,
    create_progress,
    display_error,
    display_metrics_report,
    display_result_panel,
    display_webhook_report,
    load_json_records,
    summarise_findings,
    validate_format,
)
from integration.config_manager import ConfigManager, SystemConfig
from integration.logger import get_logger, new_correlation_id, setup_logging

# Organization id passed to file-backed record sources.
_LOCAL_ORG = "local"


# ── Click group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version="1.0.0", prog_name="apimetrics")
@click.option(
    "--config",
    "config_path",
    default="config.yaml",
    envvar="APIMETRICS_CONFIG",
    help="Path to config.yaml.",
    type=click.Path(),
)
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """📊 API Metrics Engine

    Aggregates API request logs and webhook delivery logs into
    success-rate breakdowns, per-application profiles, leaderboards
    and anomaly findings.

    \b
    Quick start:
      python main.py analyze api_requests.json
      python main.py webhooks webhook_logs.json
      python main.py --help
    """
    ctx.ensure_object(dict)
    try:
        cfg = ConfigManager.load(config_path)
    except Exception as exc:
        console.print(f"[red]Failed to load config:[/red] {exc}")
        raise SystemExit(2) from exc

    ctx.obj["config"] = cfg
    setup_logging(cfg.system.log_level)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── shared helpers ─────────────────────────────────────────────────


def _check_formats(formats: Tuple[str, ...]) -> List[str]:
    for fmt in formats:
        if not validate_format(fmt):
            console.print(f"[red]Unsupported format:[/red] {fmt}  (use markdown or json)")
            raise SystemExit(2)
    return [f.lower() for f in formats]


def _engine_config(config: SystemConfig, output: Optional[str]) -> MetricsConfig:
    try:
        metrics_cfg = config.to_metrics_config()
    except ValueError as exc:
        display_error(exc, "configuration")
        raise SystemExit(2) from exc
    if output:
        metrics_cfg = dataclasses.replace(metrics_cfg, output_dir=output)
    return metrics_cfg


def _require_list(data: Any) -> List[Any]:
    if not isinstance(data, list):
        raise InputShapeError(f"expected a list of records, got {type(data).__name__}")
    return data


def _catalog_source(
    metrics_cfg: MetricsConfig,
    catalog_path: Optional[str],
    no_catalog: bool,
) -> Optional[CatalogSource]:
    """Local catalog file, disabled catalog, or ``None`` for the configured URL."""
    if no_catalog:
        return StaticCatalogSource()
    if catalog_path:
        with open(catalog_path, encoding="utf-8") as fh:
            return StaticCatalogSource(parse_openapi(json.load(fh)))
    if not metrics_cfg.enable_catalog:
        return StaticCatalogSource()
    return None


async def _build_api_report(
    builder: MetricsReportBuilder,
    source: RecordSource,
    roster: Optional[List[Dict[str, Any]]],
) -> MetricsReport:
    records = await source.fetch_api_requests(_LOCAL_ORG)
    return await builder.build_metrics_report(records, roster=roster)


# ── analyze ────────────────────────────────────────────────────────


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--roster", "-r", default=None, type=click.Path(exists=True, dir_okay=False),
              help="JSON file with actor roster entries (id, name, email).")
@click.option("--catalog", "catalog_path", default=None,
              type=click.Path(exists=True, dir_okay=False),
              help="Local OpenAPI JSON document to use instead of the remote catalog.")
@click.option("--no-catalog", is_flag=True, default=False,
              help="Skip the operation catalog entirely.")
@click.option(
    "--format",
    "-f",
    "formats",
    multiple=True,
    default=("markdown",),
    help="Report format(s): markdown, json.  Repeatable.",
)
@click.option("--output", "-o", default=None, help="Output directory (default: from config).")
@click.option("--top", "-n", default=10, show_default=True, help="Rows per table.")
@click.pass_context
def analyze(
    ctx: click.Context,
    input_file: str,
    roster: Optional[str],
    catalog_path: Optional[str],
    no_catalog: bool,
    formats: Tuple[str, ...],
    output: Optional[str],
    top: int,
) -> None:
    """Build a metrics report from an API request log export.

    \b
    Examples:
      python main.py analyze api_requests.json
      python main.py analyze api_requests.json -r admins.json -f json
      python main.py analyze api_requests.json --catalog spec3.json -o out/
    """
    config: SystemConfig = ctx.obj["config"]
    fmts = _check_formats(formats)
    metrics_cfg = _engine_config(config, output)
    log = get_logger("cli.analyze")
    new_correlation_id()

    started = time.monotonic()
    try:
        source = StaticRecordSource(api_requests=_require_list(load_json_records(input_file)))
        roster_entries = load_json_records(roster) if roster else None
        builder = MetricsReportBuilder(
            metrics_cfg,
            catalog_source=_catalog_source(metrics_cfg, catalog_path, no_catalog),
        )
        progress = create_progress()
        with progress:
            task = progress.add_task("Building metrics report …", total=1)
            report = asyncio.run(_build_api_report(builder, source, roster_entries))
            progress.advance(task)
        paths = {fmt: builder.save(report, fmt=fmt) for fmt in fmts}
    except InputShapeError as exc:
        display_error(exc, "input")
        raise SystemExit(1) from exc
    except (OSError, ValueError) as exc:
        display_error(exc, input_file)
        raise SystemExit(1) from exc

    log.info("analysis_complete", records=report.meta.count, anomalies=len(report.anomalies))
    display_metrics_report(report, limit=top)
    display_result_panel({
        "title": "API Request Analysis",
        "count": report.meta.count,
        "success_rate": report.summary.overall_stats.overall_success_rate,
        "findings": summarise_findings(report.anomalies),
        "report_paths": paths,
        "duration": time.monotonic() - started,
    })


# ── webhooks ───────────────────────────────────────────────────────


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "-f",
    "formats",
    multiple=True,
    default=("markdown",),
    help="Report format(s): markdown, json.  Repeatable.",
)
@click.option("--output", "-o", default=None, help="Output directory (default: from config).")
@click.option("--top", "-n", default=10, show_default=True, help="Rows per table.")
@click.pass_context
def webhooks(
    ctx: click.Context,
    input_file: str,
    formats: Tuple[str, ...],
    output: Optional[str],
    top: int,
) -> None:
    """Build a metrics report from a webhook delivery log export.

    \b
    Example:
      python main.py webhooks webhook_logs.json -f json
    """
    config: SystemConfig = ctx.obj["config"]
    fmts = _check_formats(formats)
    metrics_cfg = _engine_config(config, output)
    log = get_logger("cli.webhooks")
    new_correlation_id()

    started = time.monotonic()
    try:
        source = StaticRecordSource(webhook_logs=_require_list(load_json_records(input_file)))
        deliveries = asyncio.run(source.fetch_webhook_logs(_LOCAL_ORG))
        builder = MetricsReportBuilder(metrics_cfg, catalog_source=StaticCatalogSource())
        report = builder.build_webhook_metrics(deliveries)
        paths = {fmt: builder.save(report, fmt=fmt) for fmt in fmts}
    except InputShapeError as exc:
        display_error(exc, "input")
        raise SystemExit(1) from exc
    except (OSError, ValueError) as exc:
        display_error(exc, input_file)
        raise SystemExit(1) from exc

    log.info("webhook_analysis_complete", records=report.meta.count)
    display_webhook_report(report, limit=top)
    display_result_panel({
        "title": "Webhook Analysis",
        "count": report.meta.count,
        "success_rate": report.meta.overall.overall_success_rate,
        "findings": 0,
        "report_paths": paths,
        "duration": time.monotonic() - started,
    })


# ── serve ──────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", "-h", default=None, help="Bind host (default: from config).")
@click.option("--port", "-p", default=None, type=int, help="Bind port (default: from config).")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Start the REST API server.

    \b
    Example:
      python main.py serve --port 8000
    """
    import uvicorn

    from apimetrics.api.dependencies import init_dependencies
    from apimetrics.api.server import create_app

    config: SystemConfig = ctx.obj["config"]
    bind_host = host or config.api.host
    bind_port = port or config.api.port
    app = create_app(config.api.cors_origins if config.api.enable_cors else None)

    console.print(
        f"[bold green]Starting API server on {bind_host}:{bind_port} …[/bold green]",
    )
    console.print("Swagger UI → http://localhost:{0}/docs".format(bind_port))

    init_dependencies(_engine_config(config, None))
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=config.system.log_level.lower())


# ── validate ───────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--config",
    "config_path",
    default="config.yaml",
    help="Config file to validate.",
    type=click.Path(),
)
def validate(config_path: str) -> None:
    """Validate the configuration file.

    \b
    Example:
      python main.py validate --config config.yaml
    """
    try:
        cfg = ConfigManager.load(config_path)
    except Exception as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        raise SystemExit(1)

    issues = ConfigManager.validate(cfg)
    if issues:
        console.print("[yellow]⚠ Validation issues:[/yellow]")
        for issue in issues:
            console.print(f"  • {issue}")
        raise SystemExit(1)

    console.print("[green]✅ Configuration is valid.[/green]")
    console.print(f"  Version        : {cfg.system.version}")
    console.print(f"  Log level      : {cfg.system.log_level}")
    console.print(f"  Catalog        : {cfg.catalog.url if cfg.catalog.enabled else 'disabled'}")
    console.print(f"  Output dir     : {cfg.reporting.output_directory}")
    console.print(f"  API port       : {cfg.api.port}")


# ── entry point ────────────────────────────────────────────────────

if __name__ == "__main__":
    cli()
