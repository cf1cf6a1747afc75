"""
Main BatchFlow CLI application.

Provides the entry point for the batchflow command-line interface with
commands for running and validating job files.
"""

from __future__ import annotations

import sys
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from batchflow.cli.commands import run, validate
from batchflow.core.types import OutputMode

# =============================================================================
# CLI Application Setup
# =============================================================================

app = typer.Typer(
    name="batchflow",
    help="BatchFlow CLI - Bounded parallel batch execution",
    add_completion=False,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

console = Console()
error_console = Console(stderr=True)

app.command()(run.run)
app.command()(validate.validate)


# =============================================================================
# Version and Info Commands
# =============================================================================


def _get_version() -> str:
    from batchflow import __version__

    return __version__


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]BatchFlow[/bold blue] version [green]{_get_version()}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    BatchFlow - Bounded parallel batch execution with timeouts.

    Runs the tasks of a job file a few at a time, each under its own
    deadline, and reports progress while they run.

    Examples:
        batchflow run jobs.yaml --mode visual
        batchflow validate jobs.yaml
        batchflow config --all
    """


# =============================================================================
# Additional Commands
# =============================================================================

MODE_DESCRIPTIONS = {
    OutputMode.SILENT: "No progress output, results only",
    OutputMode.SUMMARY: "One status line per scheduler poll",
    OutputMode.VISUAL: "Progress table with bars and recent activity",
    OutputMode.DASHBOARD: "JSON snapshots to a file or HTTP endpoint",
}


@app.command()
def modes() -> None:
    """List the progress output modes."""
    table = Table(title="Output Modes", show_header=True, header_style="bold cyan")
    table.add_column("Mode", style="cyan")
    table.add_column("Description")

    for mode in OutputMode:
        table.add_row(mode.value, MODE_DESCRIPTIONS.get(mode, ""))

    console.print()
    console.print(table)
    console.print()
    console.print("[dim]Use --mode/-m with run to pick one.[/dim]")


@app.command()
def config(
    show_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Show all configuration values"),
    ] = False,
) -> None:
    """Display current configuration."""
    try:
        from batchflow.core.config import get_config

        config = get_config()
    except Exception as e:
        error_console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title="BatchFlow Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Workers", f"{config.pool.min_workers}-{config.pool.max_workers}")
    table.add_row("Poll Interval", f"{config.scheduler.poll_interval:g}s")
    table.add_row("Default Timeout", f"{config.scheduler.default_timeout:g}s")
    table.add_row("Output Mode", config.progress.mode.value)

    if show_all:
        table.add_row("Visual Refresh", f"{config.progress.visual_refresh_interval:g}s")
        table.add_row("Export Interval", f"{config.progress.export_interval:g}s")
        table.add_row("Dashboard Path", config.progress.dashboard_path or "-")
        table.add_row("Dashboard URL", config.progress.dashboard_url or "-")
        table.add_row("Activity Log Size", str(config.progress.activity_log_size))
        table.add_row("Include Metadata", str(config.results.include_metadata))
        table.add_row("Export Path", config.results.export_path or "-")
        table.add_row("Sort By", config.results.sort_by or "submission")
        table.add_row("Log Level", config.logging.level)

    console.print()
    console.print(table)
    console.print()

    if not show_all:
        console.print("[dim]Use --all to see full configuration.[/dim]")


# =============================================================================
# Entry Point
# =============================================================================


def cli() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    cli()


__all__ = ["app", "cli", "main"]
