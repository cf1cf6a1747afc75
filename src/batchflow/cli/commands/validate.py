"""
Validate command for BatchFlow CLI.

Parses a job file, resolves every work item and capability, and prints what
would run without running it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from batchflow.jobs import load_job_file
from batchflow.utils.errors import BatchFlowError

console = Console()
error_console = Console(stderr=True)


def validate(
    job_file: Annotated[
        Path,
        typer.Argument(help="YAML or JSON job file"),
    ],
) -> None:
    """
    Check a job file without running it.

    Examples:
        batchflow validate jobs.yaml
    """
    try:
        job = load_job_file(job_file)
        items = job.work_items(source=str(job_file))
    except BatchFlowError as e:
        error_console.print(f"[red]Invalid:[/red] {e}")
        raise typer.Exit(code=1)

    _, capability_errors = job.build_bundle().materialize()

    table = Table(title=f"Tasks in {job_file.name}", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Call")
    table.add_column("Args")
    table.add_column("Timeout", justify="right")

    for index, (spec, item) in enumerate(zip(job.tasks, items), start=1):
        table.add_row(
            str(index),
            item.id or "[dim](generated)[/dim]",
            spec.call,
            ", ".join(repr(arg) for arg in item.args) or "-",
            f"{item.timeout:g}s" if item.timeout is not None else "[dim]default[/dim]",
        )

    console.print()
    console.print(table)

    for error in capability_errors:
        console.print(f"[yellow]Capability warning:[/yellow] {error.message}")

    console.print(f"[green]Valid:[/green] {len(items)} task(s)")


__all__ = ["validate"]
