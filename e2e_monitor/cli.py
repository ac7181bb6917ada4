#!/usr/bin/env python3
"""
Command-line interface for the E2E monitor.

This module provides the `e2e-monitor` command built with typer and rich:
scaffolding and validating configuration, analyzing a cucumber report, and
running the build/test/report loop once or continuously.
"""

import json
import signal
import threading
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from e2e_monitor.common.file_logger import setup_file_logger
from e2e_monitor.common.logger import get_logger
from e2e_monitor.config_loader import MonitorConfig, generate_template, load_config
from e2e_monitor.monitor import CycleError, Monitor
from e2e_monitor.reporter.analyzer import ReportUnavailable, Summary, analyze_report_file
from e2e_monitor.reporter.generate import generate_json_report

app = typer.Typer(
    name="e2e-monitor",
    help="Plugin E2E Monitor - build, test and report loop",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
logger = get_logger(__name__)

STATUS_STYLES = {"passed": "green", "failed": "red", "skipped": "yellow"}


def _error_panel(title: str, body: str) -> Panel:
    return Panel(
        f"[red]✗ {title}:[/red]\n\n{escape(body)}",
        title="[bold red]Error[/bold red]",
        box=box.ROUNDED,
        border_style="red",
    )


def _load_or_exit(config: Optional[str], env_file: Optional[str]) -> MonitorConfig:
    try:
        return load_config(config, env_file=env_file)
    except FileNotFoundError:
        console.print(_error_panel("File not found", str(config)))
        raise typer.Exit(1)
    except Exception as e:
        console.print(_error_panel("Invalid configuration", str(e)))
        raise typer.Exit(1)


def _summary_table(summary: Summary) -> Table:
    table = Table(title="Scenario Results", box=box.ROUNDED)
    table.add_column("Feature", style="cyan")
    table.add_column("Scenario")
    table.add_column("Status")
    table.add_column("Error", style="dim")

    for case in summary.test_cases:
        style = STATUS_STYLES.get(case.status, "white")
        error = (case.error_message or "").splitlines()[0] if case.error_message else ""
        table.add_row(
            escape(case.feature_name),
            escape(case.test_name),
            f"[{style}]{case.status}[/{style}]",
            escape(error),
        )
    return table


def _print_summary(summary: Summary) -> None:
    console.print(_summary_table(summary))
    style = "green" if summary.all_passed else "red"
    console.print(
        f"\n[bold]Total:[/bold] {summary.total_tests}  "
        f"[green]Passed: {summary.successful_tests}[/green]  "
        f"[{style}]Failed: {summary.failed_tests}[/{style}]"
    )
    if summary.failed_test_names:
        console.print("\n[bold]Failed scenarios:[/bold]")
        for name in summary.failed_test_names:
            console.print(f"  • [red]{escape(name)}[/red]")


@app.command()
def init(
    output: str = typer.Option(
        "monitor.yaml",
        "--output", "-o",
        help="Output file path"
    )
):
    """
    Generate a scaffold monitor.yaml template.
    """
    output_path = Path(output)

    if output_path.exists():
        console.print(f"[yellow]⚠[/yellow]  File [cyan]{output_path}[/cyan] already exists.")
        if not typer.confirm("  Overwrite?", default=False):
            console.print("[dim]Cancelled[/dim]")
            raise typer.Abort()

    try:
        output_path.write_text(generate_template(), encoding="utf-8")
    except OSError as e:
        console.print(_error_panel("Failed to create template", str(e)))
        raise typer.Exit(1)

    console.print(Panel(
        Align.center(Text(f"✓ Template created successfully!\n\n{output_path}", style="green bold")),
        title="[bold green]Success[/bold green]",
        box=box.ROUNDED,
        border_style="green",
        padding=(1, 2)
    ))
    console.print(f"[dim]   Then run:[/dim] [cyan]e2e-monitor validate {output_path}[/cyan]\n")


@app.command()
def validate(
    file: str = typer.Argument(..., help="Path to monitor YAML file"),
    env_file: Optional[str] = typer.Option(None, "--env-file", help="Optional .env file"),
):
    """
    Validate a monitor configuration file.
    """
    console.print(Rule(f"[bold cyan]Validating: {escape(Path(file).name)}[/bold cyan]"))
    config = _load_or_exit(file, env_file)

    table = Table(title="Validation Results", box=box.ROUNDED)
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    def check(name: str, ok: bool, details: str, warn: bool = False) -> None:
        if ok:
            status = "[green]✓ OK[/green]"
        else:
            status = "[yellow]⚠ Warning[/yellow]" if warn else "[red]✗ Missing[/red]"
        table.add_row(name, status, escape(details))

    table.add_row("Schema", "[green]✓ Valid[/green]", "Matches MonitorConfig schema")
    check("E2E directory", config.e2e_dir.exists(), str(config.e2e_dir))
    check("Compile script", config.compile_script.exists(), str(config.compile_script))
    if config.licence_source is not None:
        check("Licence file", config.licence_source.exists(), str(config.licence_source))
    check("Slack webhook", bool(config.slack_webhook_url), "configured" if config.slack_webhook_url else "notifications disabled", warn=True)
    check("Analytics", bool(config.analytics_url), config.analytics_url or "publishing disabled", warn=True)
    table.add_row("Interval", f"{config.loop_interval:g}s", f"retention {config.retention_days} day(s)")
    console.print(table)


@app.command()
def analyze(
    report: str = typer.Argument(..., help="Path to cucumber JSON report"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write summary JSON to this file"),
):
    """
    Analyze a cucumber JSON report and print per-scenario results.
    """
    try:
        summary = analyze_report_file(report)
    except ReportUnavailable as e:
        console.print(_error_panel("Report unavailable", str(e)))
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_summary(summary)

    if output:
        path = generate_json_report(summary, output)
        if not as_json:
            console.print(f"\n[dim]Summary written to[/dim] [cyan]{path}[/cyan]")


def _build_monitor(config: Optional[str], env_file: Optional[str]) -> Monitor:
    monitor_config = _load_or_exit(config, env_file)
    setup_file_logger(
        log_file=str(monitor_config.log_file) if monitor_config.log_file else None,
        level=monitor_config.log_level,
    )
    return Monitor(monitor_config)


@app.command()
def once(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to monitor YAML file"),
    env_file: Optional[str] = typer.Option(".env", "--env-file", help="Optional .env file"),
):
    """
    Run a single build/test/report cycle.
    """
    monitor = _build_monitor(config, env_file)
    result = monitor.run_cycle()

    if result is None or not result.success:
        if result is not None and result.summary is not None:
            _print_summary(result.summary)
        raise typer.Exit(1)

    if result.summary is not None:
        _print_summary(result.summary)
    console.print(Panel(
        Align.center(Text("✓ Cycle passed", style="green bold")),
        box=box.ROUNDED,
        border_style="green",
    ))


@app.command()
def run(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to monitor YAML file"),
    env_file: Optional[str] = typer.Option(".env", "--env-file", help="Optional .env file"),
    max_cycles: Optional[int] = typer.Option(None, "--max-cycles", min=1, help="Stop after N cycles"),
):
    """
    Run the monitor loop until interrupted.
    """
    monitor = _build_monitor(config, env_file)
    stop_event = threading.Event()

    def _signal_handler(signum, frame):
        console.print("\n[yellow]Received signal, shutting down gracefully...[/yellow]")
        monitor.stop()
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        monitor.start(max_cycles=max_cycles, sleep=stop_event.wait)
    except CycleError as e:
        console.print(_error_panel("Failed to start monitor", str(e)))
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
