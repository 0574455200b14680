"""CLI helpers — input loading, output formatting, Rich widgets."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from apimetrics.schema import AnomalyFinding, AnomalyType, MetricsReport, NamedMetric, WebhookReport

console = Console(stderr=True)

# Keys under which exported log files wrap their record list.
_WRAPPER_KEYS = ("records", "items", "data")

_ANOMALY_STYLE: Dict[AnomalyType, str] = {
    AnomalyType.HIGH_FAILURE_RATE: "red",
    AnomalyType.DEPRECATED_OPERATION: "red",
    AnomalyType.BETA_OPERATION: "yellow",
    AnomalyType.HIGH_TRAFFIC: "yellow",
    AnomalyType.HIGH_ACTIVITY: "yellow",
    AnomalyType.BUSIEST_HOURS: "cyan",
    AnomalyType.OFF_PEAK_ACTIVITY: "magenta",
    AnomalyType.NO_ANOMALIES: "green",
}


# ── validation helpers ─────────────────────────────────────────────


def validate_format(fmt: str) -> bool:
    """Return ``True`` if *fmt* is a supported report format."""
    return fmt.lower() in {"markdown", "json"}


def load_json_records(path: str) -> Any:
    """Read a JSON export and return its record list.

    A top-level object wrapping the list under ``records``, ``items`` or
    ``data`` is unwrapped.  Anything else is returned as-is so the
    engine can reject it.
    """
    with open(Path(path), encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                return data[key]
    return data


# ── formatting helpers ─────────────────────────────────────────────


def format_duration(seconds: float) -> str:
    """Format *seconds* as ``2m 34s`` or ``1.2s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.0f}s"


def format_rate(rate: str) -> str:
    """Colour a ``"66.67%"`` style rate string by health."""
    try:
        pct = float(rate.rstrip("%"))
    except ValueError:
        return f"[dim]{rate}[/dim]"
    if pct >= 90:
        return f"[green]{rate}[/green]"
    if pct >= 50:
        return f"[yellow]{rate}[/yellow]"
    return f"[red]{rate}[/red]"


# ── Rich widgets ───────────────────────────────────────────────────


def create_progress() -> Progress:
    """Create a Rich Progress bar suitable for build stages."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def display_result_panel(result: Dict[str, Any]) -> None:
    """Display a success panel summarising one report build."""
    report_paths = result.get("report_paths", {})
    files_display = ", ".join(str(p) for p in report_paths.values()) or "none"

    body = (
        f"[green]✅ {result.get('title', 'Metrics')} Complete[/green]\n\n"
        f"Records    : [cyan]{result.get('count', 0)}[/cyan]\n"
        f"Success    : {format_rate(result.get('success_rate', 'N/A'))}\n"
        f"Findings   : {result.get('findings', 0)}\n"
        f"Reports    : {files_display}\n"
        f"Duration   : {format_duration(result.get('duration', 0.0))}"
    )

    console.print(
        Panel(body, title="Result", border_style="green", padding=(1, 2)),
    )


def display_error(error: Exception, context: str = "") -> None:
    """Display a formatted error panel."""
    msg = f"[red]✗ Error{f' ({context})' if context else ''}[/red]\n\n{error}"
    console.print(Panel(msg, title="Error", border_style="red", padding=(1, 2)))


def display_metrics_table(title: str, metrics: Sequence[NamedMetric], limit: int = 10) -> None:
    """Print the top *limit* rows of one dimension."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan", overflow="fold")
    table.add_column("Success", justify="right")
    table.add_column("Failure", justify="right")
    table.add_column("Success Rate", justify="right")

    for metric in list(metrics)[:limit]:
        label = getattr(metric, "display_label", None) or metric.name
        table.add_row(
            label,
            str(metric.success),
            str(metric.failure),
            format_rate(metric.success_rate),
        )

    console.print(table)


def display_anomalies_table(findings: Sequence[AnomalyFinding]) -> None:
    """Print anomaly findings, one row each."""
    table = Table(title="Anomalies", show_header=True, header_style="bold magenta")
    table.add_column("Type", no_wrap=True)
    table.add_column("Entity", style="white")
    table.add_column("Name", style="cyan", overflow="fold")

    for finding in findings:
        style = _ANOMALY_STYLE.get(finding.type, "white")
        table.add_row(
            f"[{style}]{finding.type.value}[/{style}]",
            finding.entity_type,
            finding.entity_name,
        )

    console.print(table)


def display_metrics_report(report: MetricsReport, limit: int = 10) -> None:
    """Print the headline dimensions and anomalies of a request report."""
    stats = report.summary.overall_stats
    console.print("\n[bold]📊 API Request Metrics[/bold]\n")
    console.print(f"  Records          : {report.meta.count}")
    console.print(f"  Window           : {report.meta.start_time} → {report.meta.end_time}")
    console.print(f"  Overall success  : {format_rate(stats.overall_success_rate)}")
    console.print(f"  Catalog entries  : {report.meta.catalog_size}\n")

    for title, metrics in report.dimensions().items():
        display_metrics_table(title, metrics, limit)
    display_anomalies_table(report.anomalies)


def display_webhook_report(report: WebhookReport, limit: int = 10) -> None:
    """Print every dimension and the receiver table of a webhook report."""
    console.print("\n[bold]📨 Webhook Delivery Metrics[/bold]\n")
    console.print(f"  Deliveries       : {report.meta.count}")
    console.print(f"  Window           : {report.meta.start_time} → {report.meta.end_time}\n")

    for title, metrics in report.dimensions().items():
        display_metrics_table(title, metrics, limit)

    table = Table(title="HTTP Servers", show_header=True, header_style="bold magenta")
    table.add_column("Host", style="cyan")
    table.add_column("Success", justify="right")
    table.add_column("Failure", justify="right")
    table.add_column("Avg OK (ms)", justify="right")
    table.add_column("Avg Fail (ms)", justify="right")
    for server in report.http_servers:
        table.add_row(
            server.hostname,
            str(server.success),
            str(server.failure),
            _fmt_ms(server.avg_success_duration),
            _fmt_ms(server.avg_failure_duration),
        )
    console.print(table)


def _fmt_ms(value: Any) -> str:
    return "N/A" if value is None else f"{value:.2f}"


def summarise_findings(findings: List[AnomalyFinding]) -> int:
    """Count findings that flag a deviation (not informational or all-clear)."""
    quiet = {AnomalyType.BUSIEST_HOURS, AnomalyType.NO_ANOMALIES}
    return sum(1 for f in findings if f.type not in quiet)
