"""Console summaries and JSON export for load test results."""

import json
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from .metrics import LoadTestMetrics
from .regression import RegressionDetection
from .stress import saturation_point

console = Console()

SEVERITY_STYLES = {
    "none": "green",
    "minor": "yellow",
    "major": "dark_orange",
    "critical": "bold red",
}


def format_duration(seconds: float) -> str:
    """Format duration in a human-readable way."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    seconds = int(seconds)
    if seconds < 3600:
        minutes, secs = divmod(seconds, 60)
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    hours, remaining = divmod(seconds, 3600)
    minutes = remaining // 60
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def render_load_test_summary(metrics: LoadTestMetrics, out: Optional[Console] = None) -> None:
    """Print a panel with request counts, latency and throughput for one run."""
    out = out or console

    latency = Table(box=ROUNDED, show_header=True, header_style="bold", expand=True)
    for column in ("Avg", "Min", "P50", "P95", "P99", "Max"):
        latency.add_column(column, justify="right")
    latency.add_row(
        *(
            f"{value:.1f}ms"
            for value in (
                metrics.average_response_time,
                metrics.min_response_time,
                metrics.p50_response_time,
                metrics.p95_response_time,
                metrics.p99_response_time,
                metrics.max_response_time,
            )
        )
    )

    header = (
        f"[bold]{metrics.test_name}[/bold] │ {metrics.test_id} │ "
        f"{metrics.concurrent_users} users │ {format_duration(metrics.actual_duration)}"
    )
    counts = (
        f"[bold]Requests:[/bold] {metrics.total_requests}   "
        f"[green]OK:[/green] {metrics.successful_requests}   "
        f"[red]Failed:[/red] {metrics.failed_requests}   "
        f"[yellow]Success:[/yellow] {metrics.success_rate:.2f}%"
    )
    rates = (
        f"[bold]Req/s:[/bold] {metrics.requests_per_second:.2f}   "
        f"[bold]Errors/s:[/bold] {metrics.errors_per_second:.2f}   "
        f"[bold]Throughput:[/bold] {metrics.throughput_kbps:.2f} KB/s"
    )

    parts: List[Any] = [header, Rule(style="dim"), counts, rates, "", latency]
    if metrics.errors:
        parts.extend(["", Rule(style="dim"), f"[red]Errors:[/red] {len(metrics.errors)} recorded"])
        for record in metrics.errors[:3]:
            parts.append(f"  - {record.message[:100]}")

    out.print(
        Panel(
            Group(*parts),
            title="[bold cyan]Load Test Results[/bold cyan]",
            expand=False,
            border_style="cyan",
            padding=(1, 3),
        )
    )


def build_stress_table(results: Sequence[LoadTestMetrics]) -> Table:
    table = Table(title="Stress Test Summary", box=ROUNDED, header_style="bold")
    table.add_column("Users", justify="right", style="cyan")
    table.add_column("RPS", justify="right")
    table.add_column("Avg RT", justify="right")
    table.add_column("P95 RT", justify="right")
    table.add_column("Success Rate", justify="right", style="green")
    table.add_column("Errors", justify="right", style="red")

    for metrics in results:
        table.add_row(
            str(metrics.concurrent_users),
            f"{metrics.requests_per_second:.1f}",
            f"{metrics.average_response_time:.0f}ms",
            f"{metrics.p95_response_time:.0f}ms",
            f"{metrics.success_rate:.1f}%",
            str(metrics.failed_requests),
        )
    return table


def render_stress_summary(
    results: Sequence[LoadTestMetrics],
    out: Optional[Console] = None,
    failure_threshold_percent: Optional[float] = None,
) -> None:
    """Print the per-step table and, given the threshold, where the target saturated."""
    out = out or console
    out.print(build_stress_table(results))
    if failure_threshold_percent is None or not results:
        return

    users = saturation_point(results, failure_threshold_percent)
    if users is None:
        out.print(
            f"[green]No saturation up to {results[-1].concurrent_users} users[/green] "
            f"(failure rate stayed at or below {failure_threshold_percent}%)"
        )
    else:
        out.print(
            f"[red]Saturation point: {users} users[/red] "
            f"(failure rate above {failure_threshold_percent}%)"
        )


def render_regression(detection: RegressionDetection, out: Optional[Console] = None) -> None:
    out = out or console
    style = SEVERITY_STYLES.get(detection.severity, "white")
    if not detection.detected:
        out.print(f"[{style}]No performance regression detected[/{style}]")
        return

    table = Table(box=ROUNDED, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Baseline", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Change", justify="right", style="red")
    table.add_column("Threshold", justify="right")
    for r in detection.regressions:
        table.add_row(
            r.metric,
            f"{r.baseline:.2f}",
            f"{r.current:.2f}",
            f"{r.percentage_change:+.1f}",
            f"{r.threshold:+.0f}",
        )
    out.print(
        Panel(
            table,
            title=f"[{style}]Regression detected: {detection.severity}[/{style}]",
            expand=False,
            border_style=style,
        )
    )


def save_json(data: Any, filepath: Union[str, Path]) -> str:
    """Write ``data`` (a dict or list of dicts) as indented JSON."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str, ensure_ascii=False)
    return str(filepath)
