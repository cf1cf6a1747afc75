"""
Run command for BatchFlow CLI.

Loads a job file, runs the batch with the selected output mode and prints
the result table.
"""

from __future__ import annotations

import asyncio
import copy
import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from batchflow.core.config import BatchFlowConfig, PoolConfig, get_config
from batchflow.core.runner import BatchOutcome, run_batch
from batchflow.core.types import OutputMode
from batchflow.jobs import JobFile, load_job_file
from batchflow.progress.reporters import create_reporter
from batchflow.results.aggregator import ResultRecord, summarize
from batchflow.results.export import export_results
from batchflow.utils.errors import BatchFlowError
from batchflow.utils.logging import setup_logging

console = Console()
error_console = Console(stderr=True)

STATUS_MARKUP = {
    "completed": "[green]completed[/green]",
    "failed": "[red]failed[/red]",
    "timed_out": "[magenta]timed out[/magenta]",
    "running": "[yellow]running[/yellow]",
}


def _build_config(
    job: JobFile,
    config_file: Path | None,
    mode: str | None,
    workers: int | None,
    poll_interval: float | None,
    no_metadata: bool,
) -> BatchFlowConfig:
    """Merge config file/env, job file pool bounds and CLI overrides."""
    config = BatchFlowConfig.from_file(config_file) if config_file else copy.deepcopy(get_config())

    if job.pool is not None:
        config.pool = PoolConfig(
            min_workers=job.pool.min_workers,
            max_workers=job.pool.max_workers,
        )
    if workers is not None:
        config.pool = PoolConfig(
            min_workers=min(config.pool.min_workers, workers),
            max_workers=workers,
        )
    if mode is not None:
        config.progress.mode = OutputMode.parse(mode)
    if poll_interval is not None:
        config.scheduler.poll_interval = poll_interval
    if no_metadata:
        config.results.include_metadata = False

    config.validate()
    return config


def _format_payload(record: ResultRecord, width: int = 60) -> str:
    if record.error is not None:
        text = f"{record.error.type}: {record.error.message}"
    elif record.payload is None:
        text = ""
    elif isinstance(record.payload, str):
        text = record.payload
    else:
        text = json.dumps(record.payload, default=str)
    return text if len(text) <= width else text[: width - 3] + "..."


def print_results_table(records: list[ResultRecord]) -> None:
    """Print one row per result record."""
    table = Table(title="Batch Results", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Status")
    table.add_column("Elapsed", justify="right")
    table.add_column("Payload / Error")

    for record in records:
        elapsed = "-"
        if record.metadata is not None and record.metadata.elapsed_seconds is not None:
            elapsed = f"{record.metadata.elapsed_seconds:.2f}s"
        table.add_row(
            record.id,
            record.description,
            STATUS_MARKUP.get(record.status.value, record.status.value),
            elapsed,
            _format_payload(record),
        )

    console.print()
    console.print(table)

    summary = summarize(records)
    console.print(
        f"[bold]{summary.total}[/bold] task(s): "
        + ", ".join(f"{count} {status}" for status, count in summary.counts.items() if count)
    )


def run(
    job_file: Annotated[
        Path,
        typer.Argument(help="YAML or JSON job file"),
    ],
    mode: Annotated[
        Optional[str],
        typer.Option("--mode", "-m", help="Output mode: silent, summary, visual, dashboard"),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", min=1, help="Maximum concurrent work items"),
    ] = None,
    poll_interval: Annotated[
        Optional[float],
        typer.Option("--poll-interval", help="Seconds between scheduler samples"),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", "-t", help="Default per-task timeout in seconds"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Export results (.json, .jsonl, .csv, .tsv)"),
    ] = None,
    no_metadata: Annotated[
        bool,
        typer.Option("--no-metadata", help="Drop timing metadata from the results"),
    ] = False,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="BatchFlow YAML config file"),
    ] = None,
) -> None:
    """
    Run every task of a job file.

    Exits with code 1 if any task did not complete.

    Examples:
        batchflow run jobs.yaml
        batchflow run jobs.yaml --mode visual --workers 3
        batchflow run jobs.yaml -o results.csv --no-metadata
    """
    try:
        job = load_job_file(job_file)
        if timeout is not None:
            job.defaults.timeout = timeout
        config = _build_config(job, config_file, mode, workers, poll_interval, no_metadata)
        items = job.work_items(source=str(job_file))
    except (BatchFlowError, FileNotFoundError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    setup_logging(
        level=config.logging.level,
        json_format=config.logging.json_format,
        log_file=config.logging.log_file,
    )

    progress = config.progress
    reporter = create_reporter(
        progress.mode,
        console=console,
        refresh_interval=progress.visual_refresh_interval,
        export_interval=progress.export_interval,
        activity_lines=progress.activity_display,
        dashboard_path=progress.dashboard_path,
        dashboard_url=progress.dashboard_url,
    )

    try:
        outcome: BatchOutcome = asyncio.run(
            run_batch(items, config=config, bundle=job.build_bundle(), reporter=reporter)
        )
    except BatchFlowError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    for error in outcome.submission_errors:
        error_console.print(f"[yellow]Submission rejected:[/yellow] {error.message}")

    print_results_table(outcome.records)

    if output is not None:
        try:
            fmt = export_results(outcome.records, output)
        except BatchFlowError as e:
            error_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=1)
        console.print(f"[green]Results written to:[/green] {output} ({fmt})")

    if not outcome.all_completed:
        raise typer.Exit(code=1)


__all__ = ["run", "print_results_table"]
