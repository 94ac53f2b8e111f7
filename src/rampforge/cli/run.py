"""``rampforge run``: execute a load-test script with live terminal output."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from rampforge._internal.errors import RampForgeError
from rampforge.engine.runner import LoadTestRunner

if TYPE_CHECKING:
    from rampforge.metrics.models import MetricSnapshot, RunSummary

console = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


# ---------------------------------------------------------------------------
# Rich display
# ---------------------------------------------------------------------------


def _make_live_table(snapshot: MetricSnapshot | None) -> Table:
    """Build a Rich table describing the latest tick.

    Args:
        snapshot: Latest interval snapshot, or None before the first tick.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.0f}s")
    table.add_row("Virtual Users", f"{snapshot.active_users} / {snapshot.target_users}")
    table.add_row("Iterations", str(snapshot.iterations))
    table.add_row("Requests/sec", f"{snapshot.requests_per_second:.1f}")
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    table.add_row("Checks Failed", str(snapshot.checks_failed))
    table.add_row("Request Errors", str(snapshot.request_errors))

    return table


def _print_summary(summary: RunSummary) -> None:
    """Print the final summary tables.

    Args:
        summary: Completed run summary.
    """
    if summary.checks:
        checks_table = Table(
            title="Checks",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        checks_table.add_column("Check")
        checks_table.add_column("Passed", justify="right")
        checks_table.add_column("Failed", justify="right")
        checks_table.add_column("Pass %", justify="right")
        for stats in summary.checks.values():
            style = "green" if stats.fails == 0 else "red"
            checks_table.add_row(
                f"[{style}]{escape(stats.name)}[/{style}]",
                str(stats.passes),
                str(stats.fails),
                f"{stats.pass_rate * 100:.2f}%",
            )
        console.print(checks_table)

    table = Table(
        title="Run Summary",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Test", summary.name)
    table.add_row("Pattern", summary.pattern_description)
    table.add_row("Duration", f"{summary.duration_seconds:.1f}s")
    table.add_row("Peak Virtual Users", str(summary.peak_users))
    table.add_row("Iterations", str(summary.iterations))
    table.add_row("Checks", f"{summary.checks_passed} passed / {summary.checks_failed} failed")
    table.add_row("Pass Rate", f"{summary.pass_rate * 100:.2f}%")
    table.add_row("Requests", str(summary.total_requests))
    table.add_row("Requests/sec", f"{summary.requests_per_second:.1f}")
    table.add_row("Request Errors", str(summary.request_errors))
    table.add_row(
        "Latency min / avg / max",
        f"{summary.latency_min:.1f} / {summary.latency_avg:.1f} / {summary.latency_max:.1f}ms",
    )
    table.add_row("p50 / p90 Latency", f"{summary.latency_p50:.1f} / {summary.latency_p90:.1f}ms")
    table.add_row("p95 / p99 Latency", f"{summary.latency_p95:.1f} / {summary.latency_p99:.1f}ms")

    for error_type, count in sorted(summary.errors_by_type.items()):
        table.add_row(f"  {error_type}", str(count))
    for status, count in sorted(summary.errors_by_status.items()):
        table.add_row(f"  HTTP {status}", str(count))

    console.print(table)


def _exit_code(summary: RunSummary, max_failure_rate: float | None) -> int:
    """Decide the process exit code for a finished run."""
    if summary.interrupted:
        console.print("[yellow]Load test interrupted.[/yellow]")
        return EXIT_INTERRUPTED

    if summary.target_unreachable:
        console.print("[red]FAIL:[/red] every request failed; the target is unreachable")
        return EXIT_FAILURE

    if max_failure_rate is not None and summary.failure_rate > max_failure_rate:
        console.print(
            f"[red]FAIL:[/red] Check failure rate {summary.failure_rate * 100:.2f}% "
            f"exceeds threshold {max_failure_rate * 100:.2f}%"
        )
        return EXIT_FAILURE

    console.print("[green]Load test completed successfully.[/green]")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    script: Path = typer.Argument(
        ...,
        help="Path to the load-test script (.py).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    vus: int | None = typer.Option(
        None,
        "--vus",
        "-u",
        help="Run a constant number of virtual users instead of the script's stages.",
        min=1,
    ),
    duration: str | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Override the total duration (seconds or e.g. '30s', '2m').",
    ),
    tick_interval: float | None = typer.Option(
        None,
        "--tick-interval",
        help="Seconds between concurrency adjustments (default: RAMPFORGE_TICK_INTERVAL or 1).",
        min=0.01,
    ),
    grace_period: float | None = typer.Option(
        None,
        "--grace-period",
        help="Cancel iterations still running this many seconds after the end.",
        min=0.0,
    ),
    summary_json: Path | None = typer.Option(
        None,
        "--summary-json",
        help="Write the run summary as JSON to this file.",
    ),
    max_failure_rate: float | None = typer.Option(
        None,
        "--max-failure-rate",
        help="Exit non-zero if the check failure rate exceeds this (e.g., 0.05).",
        min=0.0,
        max=1.0,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit log records as JSON lines.",
    ),
) -> None:
    """Execute a load-test script with live terminal output."""
    log_level = logging.DEBUG if verbose else logging.WARNING

    try:
        test_runner = LoadTestRunner(
            script,
            vus=vus,
            duration=duration,
            tick_interval=tick_interval,
            grace_period=grace_period,
            log_level=log_level,
            json_logs=json_logs,
        )
    except RampForgeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE) from exc

    console.print(
        Panel(
            f"[bold]Test:[/bold]     {test_runner.config.name}\n"
            f"[bold]Script:[/bold]   {script.name}\n"
            f"[bold]Target:[/bold]   {test_runner.config.method} {test_runner.config.url}\n"
            f"[bold]Pattern:[/bold]  {test_runner.pattern.describe()}\n"
            f"[bold]Duration:[/bold] {test_runner.pattern.duration_seconds:g}s",
            title="RampForge",
            border_style="cyan",
        )
    )

    try:
        with Live(
            _make_live_table(None),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:

            def _live_snapshot(snapshot: MetricSnapshot) -> None:
                live.update(_make_live_table(snapshot))

            test_runner.set_snapshot_callback(_live_snapshot)
            summary = test_runner.run()
    except RampForgeError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE) from exc

    _print_summary(summary)

    if summary_json is not None:
        summary_json.parent.mkdir(parents=True, exist_ok=True)
        summary_json.write_text(json.dumps(summary.to_dict(), indent=2))
        console.print(f"Summary written to {summary_json}")

    code = _exit_code(summary, max_failure_rate)
    if code != EXIT_OK:
        raise typer.Exit(code=code)
